default = "v1.0"
allowed_versions = ["v1.0", "v2.0"]
