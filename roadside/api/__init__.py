"""HTTP surface: dependencies, error translation, schemas and routers."""
