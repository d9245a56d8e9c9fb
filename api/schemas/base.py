"""
Shared base for API schemas.

JSON field names are camelCase on the wire (jobId, not job_id) because the
web client is JavaScript; Python code keeps snake_case attribute names.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
