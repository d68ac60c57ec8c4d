"""Wire models for the generation API and the two generation request variants."""
from __future__ import annotations

from typing import Annotated, Any, ClassVar, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, model_validator

from .exceptions import VidaiError

MODELS = ("gen2", "gen3")


class _Wire(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ----------------------------------------------------------------------
# Profile / scope
# ----------------------------------------------------------------------


class Organization(_Wire):
    id: int


class User(_Wire):
    id: int
    organizations: list[Organization] = Field(default_factory=list)


class Profile(_Wire):
    user: User

    def team_id(self) -> int:
        """First organization the user belongs to, else the user's own id."""
        if self.user.organizations:
            return self.user.organizations[0].id
        return self.user.id


# ----------------------------------------------------------------------
# Uploads and assets
# ----------------------------------------------------------------------


class UploadSlot(_Wire):
    id: str = ""
    upload_urls: list[str] = Field(default_factory=list, alias="uploadUrls")


class UploadComplete(_Wire):
    url: str = ""


class Dataset(_Wire):
    id: str = ""
    url: Optional[str] = None


class DatasetEnvelope(_Wire):
    dataset: Dataset


class DeleteResult(_Wire):
    success: bool = False


class Asset(_Wire):
    """An uploaded input image.

    ``url`` is what generation requests reference; ``id`` is what
    :meth:`~vidai.resources.AssetsResource.delete` needs.
    """

    id: str
    url: str
    preview_url: Optional[str] = None


# ----------------------------------------------------------------------
# Tasks
# ----------------------------------------------------------------------


class Artifact(_Wire):
    id: str = ""
    filename: str = ""
    url: str = ""
    preview_urls: list[str] = Field(default_factory=list, alias="previewUrls")


class TaskError(_Wire):
    message: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("message", "errorMessage")
    )
    reason: Optional[str] = None
    moderation_category: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("moderation_category", "moderationCategory")
    )


class Task(_Wire):
    id: str
    name: str = ""
    status: str
    progress_ratio: Union[float, str, None] = Field(default=None, alias="progressRatio")
    progress_text: Optional[str] = Field(default=None, alias="progressText")
    artifacts: list[Artifact] = Field(default_factory=list)
    error: Optional[TaskError] = None


class TaskEnvelope(_Wire):
    task: Task


class Generation(BaseModel):
    """Result of one successful task."""

    id: str
    url: str
    normalized_url: str
    preview_urls: list[str] = Field(default_factory=list)


# ----------------------------------------------------------------------
# Generation requests
# ----------------------------------------------------------------------


class _GenerateRequest(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    prompt: str = ""
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    asset_name: str = ""
    watermark: bool = False
    explore_mode: bool = False
    folder: Optional[str] = None

    @model_validator(mode="after")
    def _single_input(self) -> "_GenerateRequest":
        if self.image_url and self.video_url:
            raise ValueError("image_url and video_url are mutually exclusive")
        return self

    @property
    def is_continuation(self) -> bool:
        return bool(self.video_url)


class Gen2Request(_GenerateRequest):
    """Gen-2: fixed 4 second clips, motion score, pixel dimensions."""

    seconds: ClassVar[int] = 4
    display_name: ClassVar[str] = "Gen-2"

    model: Literal["gen2"] = "gen2"
    interpolate: bool = True
    upscale: bool = False
    motion_score: int = Field(default=22, ge=1, le=100)
    width: int = Field(default=1280, gt=0)
    height: int = Field(default=768, gt=0)


class Gen3Request(_GenerateRequest):
    """Gen-3: fixed 10 second clips, pixel dimensions or a resolution tier."""

    seconds: ClassVar[int] = 10
    display_name: ClassVar[str] = "Gen-3 Alpha Turbo"

    model: Literal["gen3"] = "gen3"
    width: Optional[int] = Field(default=None, gt=0)
    height: Optional[int] = Field(default=None, gt=0)
    resolution: Optional[str] = None
    last_frame: bool = False

    @model_validator(mode="after")
    def _sizing(self) -> "Gen3Request":
        if (self.width is None) != (self.height is None):
            raise ValueError("width and height must be given together")
        if self.resolution and self.width is not None:
            raise ValueError("resolution and width/height are mutually exclusive")
        if self.last_frame and not self.image_url:
            raise ValueError("last_frame requires an image input")
        return self


GenerateRequest = Annotated[Union[Gen2Request, Gen3Request], Field(discriminator="model")]


class GenerationOptions(BaseModel):
    """Per-run knobs shared by every step of a chain.

    :meth:`request` turns them into the request variant of :attr:`model`,
    keeping only the fields that variant accepts.
    """

    model: Literal["gen2", "gen3"] = "gen2"
    interpolate: bool = True
    upscale: bool = False
    watermark: bool = False
    explore_mode: bool = False
    motion_score: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    resolution: Optional[str] = None
    last_frame: bool = False
    folder: Optional[str] = None

    def request(
        self,
        prompt: str = "",
        image_url: Optional[str] = None,
        video_url: Optional[str] = None,
        asset_name: str = "",
    ) -> GenerateRequest:
        fields: dict[str, Any] = {
            "prompt": prompt,
            "image_url": image_url,
            "video_url": video_url,
            "asset_name": asset_name,
            "watermark": self.watermark,
            "explore_mode": self.explore_mode,
            "folder": self.folder,
        }
        try:
            if self.model == "gen2":
                fields.update(
                    interpolate=self.interpolate,
                    upscale=self.upscale,
                    motion_score=self.motion_score,
                    width=self.width,
                    height=self.height,
                )
                return Gen2Request(**_drop_none(fields))
            fields.update(
                width=self.width,
                height=self.height,
                resolution=self.resolution,
                # continuations never reuse the still as an end frame
                last_frame=self.last_frame and not video_url,
            )
            return Gen3Request(**_drop_none(fields))
        except ValidationError as exc:
            raise VidaiError(f"invalid {self.model} request: {exc}") from exc


def _drop_none(fields: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in fields.items() if v is not None}
