"""
Project settings, evaluated after the environment file is loaded.
"""

import os

settings = {
    "mongo": {
        "host": os.environ.get("MONGODB_HOST", ""),
        "dns_seed_list": os.environ.get("MONGODB_DNS_SEED_LIST", ""),
    },
}
