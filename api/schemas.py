from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DatasetCreate(CamelModel):
    name: str | None = None
    description: str | None = None


class DatasetUpdate(CamelModel):
    name: str | None = None
    description: str | None = None


class MemberAdd(CamelModel):
    user_id: str | None = None
    username: str | None = None
    role: str | None = None


class MemberRemove(CamelModel):
    user_id: str | None = None


class ProblemFields(CamelModel):
    problem_text: str | None = None
    solution_text: str | None = None
    labels: List[str] | None = None
    originality: str | None = None
    variation_source: str | None = None


class ProblemCreate(ProblemFields):
    request_presigned_urls: bool = False


class ProblemUpdate(ProblemFields):
    pass


class ReviewPayload(CamelModel):
    problem_id: str | None = None
    action: str | None = None
    comments: str | None = None


class ExportPayload(CamelModel):
    dataset_id: str | None = None
    format: str | None = "json"


class SearchPayload(CamelModel):
    labels: List[str] = Field(default_factory=list)
    user: str | None = None
    status: str | None = None
    dataset_id: str | None = None


class PresignPayload(CamelModel):
    bucket: str | None = None
    key: str | None = None
    operation: str = "get"


class ProfileResponse(CamelModel):
    user_id: str
    username: str
    email: str | None = None
    groups: List[str]
    is_admin: bool
    datasets: List[str]


class StatsResponse(CamelModel):
    total_datasets: int
    total_problems: int
    total_members: int
    problems_by_status: Dict[str, int]
    problems_by_label: Dict[str, int]


class ExportResponse(CamelModel):
    message: str
    download_url: str
    export_key: str
    problem_count: int


class SignedUrlResponse(CamelModel):
    presigned_url: str
