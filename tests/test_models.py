"""
Unit Tests for request variants and wire models
"""

import pytest
from pydantic import TypeAdapter, ValidationError

from vidai.exceptions import VidaiError
from vidai.models import Gen2Request, Gen3Request, GenerateRequest, GenerationOptions, Profile, Task


def test_gen2_defaults():
    request = Gen2Request(prompt="x")
    assert request.model == "gen2"
    assert (request.width, request.height) == (1280, 768)
    assert request.motion_score == 22
    assert request.interpolate is True
    assert Gen2Request.seconds == 4
    assert Gen3Request.seconds == 10


def test_image_and_video_are_exclusive():
    with pytest.raises(ValidationError):
        Gen2Request(image_url="https://cdn.test/a.jpg", video_url="https://cdn.test/a.mp4")


def test_requests_are_frozen():
    request = Gen2Request(prompt="x")
    with pytest.raises(ValidationError):
        request.prompt = "y"


def test_gen3_dimensions_come_in_pairs():
    with pytest.raises(ValidationError):
        Gen3Request(width=1280)


def test_gen3_resolution_excludes_dimensions():
    with pytest.raises(ValidationError):
        Gen3Request(resolution="720p", width=1280, height=768)


def test_gen3_last_frame_needs_image():
    with pytest.raises(ValidationError):
        Gen3Request(prompt="x", last_frame=True)


def test_gen2_rejects_gen3_fields():
    with pytest.raises(ValidationError):
        Gen2Request(resolution="720p")


def test_options_build_selected_variant():
    assert isinstance(GenerationOptions().request(prompt="x"), Gen2Request)
    request = GenerationOptions(model="gen3", resolution="720p").request(prompt="x")
    assert isinstance(request, Gen3Request)
    assert request.resolution == "720p"


def test_generate_request_discriminates_on_model():
    adapter = TypeAdapter(GenerateRequest)

    assert isinstance(adapter.validate_python({"prompt": "x", "model": "gen2"}), Gen2Request)
    assert isinstance(adapter.validate_python({"prompt": "x", "model": "gen3"}), Gen3Request)
    with pytest.raises(ValidationError):
        adapter.validate_python({"prompt": "x", "model": "gen4"})


def test_options_keep_variant_defaults():
    request = GenerationOptions(upscale=True).request(prompt="x")
    assert request.upscale is True
    assert request.motion_score == 22
    assert request.width == 1280


def test_continuation_never_uses_end_frame():
    options = GenerationOptions(model="gen3", last_frame=True)

    first = options.request(image_url="https://cdn.test/a.jpg")
    follow_up = options.request(video_url="https://cdn.test/a.mp4")

    assert first.last_frame is True
    assert follow_up.last_frame is False
    assert follow_up.is_continuation


def test_invalid_options_raise_vidai_error():
    with pytest.raises(VidaiError, match="invalid gen2 request"):
        GenerationOptions(motion_score=500).request(prompt="x")


def test_profile_team_id():
    assert Profile.model_validate({"user": {"id": 7, "organizations": [{"id": 42}, {"id": 43}]}}).team_id() == 42
    assert Profile.model_validate({"user": {"id": 7}}).team_id() == 7


def test_task_error_aliases():
    task = Task.model_validate(
        {
            "id": "t",
            "status": "FAILED",
            "progressRatio": "0.3",
            "error": {"errorMessage": "bad", "reason": "SAFETY.INPUT.TEXT", "moderationCategory": "x"},
            "unknownField": True,
        }
    )
    assert task.error.message == "bad"
    assert task.error.moderation_category == "x"
    assert task.progress_ratio == "0.3"
