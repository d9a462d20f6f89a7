from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from starlette.datastructures import FormData, UploadFile

FILE_FIELD_PREFIX = "file_"
AUDIO_FIELD = "audio"


class ForwardedFile(BaseModel):
    field_name: str
    filename: str
    content_type: str = "application/octet-stream"
    data: bytes

    def as_httpx_file(self):
        return (self.field_name, (self.filename, self.data, self.content_type))


class WebhookRequest(BaseModel):
    """Petición multipart del chat hacia el webhook de un agente."""

    model_config = ConfigDict(populate_by_name=True)

    webhook_url: str = Field(..., alias="webhookUrl", min_length=1)
    message: str = ""
    agent_id: str = Field("", alias="agentId")
    session_id: str = Field("", alias="sessionId")
    user_email: Optional[str] = Field(None, alias="userEmail")
    video_analysis: bool = Field(False, alias="videoAnalysis")
    files: List[ForwardedFile] = []
    audio: Optional[ForwardedFile] = None

    @field_validator("webhook_url", mode="before")
    @classmethod
    def _strip_url(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("video_analysis", mode="before")
    @classmethod
    def _flag(cls, value):
        if isinstance(value, str):
            return value == "true"
        return bool(value)

    def form_fields(self) -> dict:
        fields = {
            "message": self.message,
            "agentId": self.agent_id,
            "sessionId": self.session_id,
            "userEmail": self.user_email or "",
        }
        if self.video_analysis:
            fields["videoAnalysis"] = "true"
        return fields

    def multipart_parts(self) -> list:
        """Campos de texto y archivos, en el orden en que se reenvían como multipart."""
        parts = [(name, (None, value)) for name, value in self.form_fields().items()]
        parts.extend(f.as_httpx_file() for f in self.files)
        if self.audio is not None:
            parts.append(self.audio.as_httpx_file())
        return parts


async def _read_upload(field_name: str, upload: UploadFile) -> ForwardedFile:
    data = await upload.read()
    return ForwardedFile(
        field_name=field_name,
        filename=upload.filename or field_name,
        content_type=upload.content_type or "application/octet-stream",
        data=data,
    )


async def parse_webhook_form(form: FormData) -> dict:
    """Convierte el formulario recibido en los datos crudos de un WebhookRequest."""
    payload = {}
    files = []
    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            if key.startswith(FILE_FIELD_PREFIX):
                files.append(await _read_upload(key, value))
            elif key == AUDIO_FIELD:
                payload["audio"] = await _read_upload(key, value)
        elif key in ("webhookUrl", "message", "agentId", "sessionId", "userEmail", "videoAnalysis"):
            payload[key] = value
    payload["files"] = files
    return payload
