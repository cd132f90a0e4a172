fields = {
    "name": {"type": "string", "required": True, "trim": True},
    "email": {"type": "string", "required": True, "unique": True, "trim": True},
    "password": {"type": "string", "required": True},
    "age": {"type": "number", "default": 18},
}

timestamps = True
