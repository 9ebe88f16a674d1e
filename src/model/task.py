"""큐로 전달되는 처리 작업 메시지.

레코드가 원본이고 Task는 힌트일 뿐이다. processing_type 은 잘못된
메시지를 일찍 걸러내는 용도로만 검증된다.
"""

from pydantic import BaseModel, ConfigDict, Field

from model.image import ProcessingType


class ProcessTask(BaseModel):
    model_config = ConfigDict(extra="ignore")

    image_id: str = Field(min_length=1)
    processing_type: ProcessingType

    def to_wire(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_wire(cls, raw: str | bytes) -> "ProcessTask":
        return cls.model_validate_json(raw)
