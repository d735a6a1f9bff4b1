"""
Unit tests for storage, local image operations, strategies and notifications
"""
import asyncio
import io
import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from fastapi import BackgroundTasks
from PIL import Image
from app.models.user import User
from app.services.credit_ledger import DebitResult
from app.services.email_service import EmailSender
from app.services.image_processor import get_dimensions, lanczos_upscale, to_data_url
from app.services.inference_client import InferenceClient
from app.services.notifications import NotificationDispatcher
from app.services.pipeline import output_filename
from app.services.storage import LocalStorage, sanitize_filename
from app.services.strategies import (
    REMOVE_BACKGROUND_STRATEGY,
    UPSCALE_STRATEGIES,
    execute_strategy,
    select_upscale_strategy,
)


class TestStorage:

    def test_save_and_read(self, tmp_path):
        storage = LocalStorage(str(tmp_path))

        path = storage.save(b"data", "cat.png", "original")

        assert path.startswith("original/")
        assert path.endswith("_cat.png")
        assert storage.read(path) == b"data"

    def test_same_name_does_not_collide(self, tmp_path):
        storage = LocalStorage(str(tmp_path))

        assert storage.save(b"a", "cat.png", "original") != storage.save(b"b", "cat.png", "original")

    def test_unknown_folder_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            LocalStorage(str(tmp_path)).save(b"a", "cat.png", "thumbnails")

    def test_path_traversal_rejected(self, tmp_path):
        storage = LocalStorage(str(tmp_path / "uploads"))

        with pytest.raises(ValueError):
            storage.read("../secrets.txt")

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            LocalStorage(str(tmp_path)).read("original/nope.png")

    def test_delete_missing_is_quiet(self, tmp_path):
        storage = LocalStorage(str(tmp_path))
        storage.delete("original/nope.png")
        storage.delete(None)

    @pytest.mark.parametrize("raw,expected", [
        ("photo.png", "photo.png"),
        ("../../etc/passwd", "passwd"),
        ("my holiday (1).jpg", "my_holiday_1_.jpg"),
        (None, "image"),
        ("...", "image"),
    ])
    def test_sanitize_filename(self, raw, expected):
        assert sanitize_filename(raw) == expected

    @pytest.mark.parametrize("filename,operation,expected", [
        ("cat.jpg", "upscale", "cat_upscaled.png"),
        ("cat.webp", "remove_background", "cat_nobg.png"),
        (None, "upscale", "image_upscaled.png"),
    ])
    def test_output_filename(self, filename, operation, expected):
        assert output_filename(filename, operation) == expected


class TestImageProcessor:

    def test_dimensions(self, make_image):
        dims = get_dimensions(make_image(40, 30))
        assert (dims.width, dims.height) == (40, 30)

    def test_unreadable_bytes(self):
        with pytest.raises(ValueError, match="Unreadable image"):
            get_dimensions(b"not an image")

    @pytest.mark.parametrize("scale", [2, 4, 8])
    def test_lanczos_scales_dimensions(self, make_image, scale):
        output = lanczos_upscale(make_image(10, 5), scale)

        with Image.open(io.BytesIO(output)) as image:
            assert image.format == "PNG"
            assert image.size == (10 * scale, 5 * scale)

    def test_lanczos_keeps_alpha(self):
        buffer = io.BytesIO()
        Image.new("RGBA", (4, 4), (255, 0, 0, 128)).save(buffer, format="PNG")

        output = lanczos_upscale(buffer.getvalue(), 2)

        with Image.open(io.BytesIO(output)) as image:
            assert image.mode == "RGBA"

    def test_lanczos_converts_palette_images(self):
        buffer = io.BytesIO()
        Image.new("P", (4, 4)).save(buffer, format="PNG")

        output = lanczos_upscale(buffer.getvalue(), 2)

        assert get_dimensions(output).width == 8

    def test_data_url(self):
        assert to_data_url(b"abc", "image/png") == "data:image/png;base64,YWJj"


class TestStrategies:

    def test_selection(self):
        assert select_upscale_strategy("faithful").is_local
        assert not select_upscale_strategy("general").is_local
        assert set(UPSCALE_STRATEGIES) == {"faithful", "general", "product", "portrait"}

    def test_costs(self):
        assert select_upscale_strategy("portrait").cost(8) == 9
        assert select_upscale_strategy("faithful").cost(8) == 0
        assert REMOVE_BACKGROUND_STRATEGY.cost(1) == 1

    def test_general_payload_passes_scale(self):
        payload = select_upscale_strategy("general").build_payload("data:x", 4)

        assert payload == {
            "image_url": "data:x",
            "model": "RealESRGAN_x4plus",
            "output_format": "png",
            "scale": 4,
        }

    def test_product_payload_uses_fixed_factor(self):
        payload = select_upscale_strategy("product").build_payload("data:x", 8)

        assert payload["upscaling_factor"] == 4
        assert "scale" not in payload

    def test_execute_local_does_not_call_provider(self, make_image):
        inference = MagicMock(spec=InferenceClient)

        output = asyncio.run(execute_strategy(
            select_upscale_strategy("faithful"), inference, make_image(5, 5), "image/png", 2
        ))

        assert get_dimensions(output).width == 10
        inference.run_for_url.assert_not_called()

    def test_execute_remote_downloads_output(self, make_image):
        inference = MagicMock(spec=InferenceClient)
        inference.run_for_url = AsyncMock(return_value="https://fal.media/out.png")
        inference.download = AsyncMock(return_value=b"png-bytes")

        output = asyncio.run(execute_strategy(
            REMOVE_BACKGROUND_STRATEGY, inference, make_image(), "image/jpeg", 1
        ))

        assert output == b"png-bytes"
        endpoint, payload = inference.run_for_url.call_args.args
        assert endpoint == "fal-ai/birefnet"
        assert payload["image_url"].startswith("data:image/jpeg;base64,")


class TestNotifications:

    @pytest.fixture
    def sender(self):
        return MagicMock(spec=EmailSender)

    @pytest.fixture
    def dispatcher(self, sender):
        return NotificationDispatcher(sender, low_credits_threshold=3)

    @pytest.fixture
    def user(self):
        return User(email="n@example.com", name=None, credits=0, total_usage=12)

    def run(self, tasks: BackgroundTasks):
        asyncio.run(tasks())

    @pytest.mark.parametrize("previous,remaining,low", [
        (4, 2, True),
        (3, 1, True),
        (3, 2, True),
        (2, 1, False),
        (5, 3, False),
        (3, 0, False),
    ])
    def test_low_credit_rule(self, dispatcher, previous, remaining, low):
        debit = DebitResult(cost=previous - remaining, previous=previous, remaining=remaining)
        assert dispatcher.is_low(debit) is low

    def test_depleted_needs_a_costed_debit(self, dispatcher):
        assert dispatcher.is_depleted(DebitResult(cost=2, previous=2, remaining=0))
        assert not dispatcher.is_depleted(DebitResult(cost=0, previous=0, remaining=0))

    def test_after_debit_schedules_first_upload_and_low(self, dispatcher, sender, user):
        tasks = BackgroundTasks()

        dispatcher.after_debit(tasks, user, DebitResult(cost=2, previous=4, remaining=2), first_upload=True)
        self.run(tasks)

        sender.send_first_upload.assert_called_once_with("User", "n@example.com", 2)
        sender.send_credits_low.assert_called_once_with("User", "n@example.com", 2)
        sender.send_credits_depleted.assert_not_called()

    def test_after_debit_to_zero_sends_depleted(self, dispatcher, sender, user):
        tasks = BackgroundTasks()

        dispatcher.after_debit(tasks, user, DebitResult(cost=2, previous=2, remaining=0), first_upload=False)
        self.run(tasks)

        sender.send_credits_depleted.assert_called_once_with("User", "n@example.com", 12)
        sender.send_first_upload.assert_not_called()

    def test_free_operation_at_zero_sends_nothing(self, dispatcher, sender, user):
        tasks = BackgroundTasks()

        dispatcher.after_debit(tasks, user, DebitResult(cost=0, previous=0, remaining=0), first_upload=False)
        self.run(tasks)

        assert sender.method_calls == []

    def test_send_errors_are_logged_not_raised(self, dispatcher, sender, user):
        sender.send_credits_depleted.side_effect = RuntimeError("smtp down")
        tasks = BackgroundTasks()

        dispatcher.credits_depleted(tasks, user)
        self.run(tasks)

        sender.send_credits_depleted.assert_called_once()


class TestEmailSender:

    def test_disabled_without_key(self):
        sender = EmailSender(api_key="")

        with patch("app.services.email_service.resend.Emails.send") as mock_send:
            assert sender.send_credits_low("Ana", "ana@example.com", 2) is False

        mock_send.assert_not_called()

    def test_sends_through_resend(self):
        sender = EmailSender(api_key="re_test", from_email="Pixelift <hi@pixelift.pl>", app_url="https://pixelift.pl/")

        with patch("app.services.email_service.resend.Emails.send") as mock_send:
            assert sender.send_credits_depleted("Ana", "ana@example.com", 42) is True

        params = mock_send.call_args.args[0]
        assert params["from"] == "Pixelift <hi@pixelift.pl>"
        assert params["to"] == ["ana@example.com"]
        assert "empty" in params["subject"]
        assert "42 images" in params["html"]
        assert "https://pixelift.pl/pricing" in params["html"]

    def test_low_credits_subject(self):
        sender = EmailSender(api_key="re_test")

        with patch("app.services.email_service.resend.Emails.send") as mock_send:
            sender.send_credits_low("Ana", "ana@example.com", 2)

        assert mock_send.call_args.args[0]["subject"] == "Ana, you have 2 credits left"

    def test_resend_errors_propagate(self):
        sender = EmailSender(api_key="re_test")

        with patch("app.services.email_service.resend.Emails.send", side_effect=RuntimeError("bad key")):
            with pytest.raises(RuntimeError):
                sender.send_first_upload("Ana", "ana@example.com", 10)
