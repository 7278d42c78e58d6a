"""
Git Info Model
Commit metadata used as fix provenance when a ticket closes.
"""
from typing import Optional

from pydantic import BaseModel


class GitInfo(BaseModel):
    author: Optional[str] = None
    commit: Optional[str] = None
    branch: Optional[str] = None
    message: Optional[str] = None
