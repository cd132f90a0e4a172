APP_NAME = "waypoint-example"
DEFAULT_PAGE_SIZE = 10
