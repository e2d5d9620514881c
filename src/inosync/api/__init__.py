"""HTTP 接口."""
