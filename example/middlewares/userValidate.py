"""
userValidate - Validation middleware for User.
"""

from waypoint.discovery import load_sibling
from waypoint.validation import validation_middleware

schemas = load_sibling(__file__, "validations", "UserSchema")

middleware = validation_middleware(schemas)
