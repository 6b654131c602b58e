from __future__ import annotations

# Import fixtures from testing/ so they are known by pytest
# and can be used with
from testing.channels import client
from testing.channels import redis_client
from testing.channels import sketch_server
