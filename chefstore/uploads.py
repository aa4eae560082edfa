import os
from typing import Optional, Tuple
from urllib.parse import urljoin
from uuid import uuid4

from werkzeug.utils import secure_filename

from .errors import ValidationError

PLACEHOLDER_PROFILE_PIC = "https://via.placeholder.com/150"
ALLOWED_IMAGE_EXTENSIONS = {"jpg", "jpeg", "png"}


class ImageStorage:
    """Stores uploaded profile pictures under the upload folder."""

    def __init__(self, upload_folder: str, logger):
        self.upload_folder = upload_folder
        self.logger = logger
        os.makedirs(upload_folder, exist_ok=True)

    @staticmethod
    def allowed_image_extension(filename: str) -> bool:
        extension = os.path.splitext(filename)[1].lower().lstrip(".")
        return bool(extension) and extension in ALLOWED_IMAGE_EXTENSIONS

    def save(self, image_file) -> str:
        if not image_file or not getattr(image_file, "filename", ""):
            raise ValidationError("No file uploaded")

        original_filename = secure_filename(image_file.filename)
        if not original_filename:
            raise ValidationError("Please choose a valid file name.")

        if not self.allowed_image_extension(original_filename):
            raise ValidationError("Unsupported image format. Upload JPG, JPEG, or PNG files.")

        extension = os.path.splitext(original_filename)[1].lower()
        unique_filename = f"{uuid4().hex}{extension}"
        destination = os.path.join(self.upload_folder, unique_filename)

        try:
            image_file.save(destination)
        except OSError as exc:
            self.logger.error("Could not store upload %s: %s", unique_filename, exc)
            raise ValidationError(
                "We could not store the uploaded image. Please try again."
            ) from exc

        return unique_filename

    def remove(self, filename: Optional[str]):
        if not filename:
            return
        target = os.path.join(self.upload_folder, os.path.basename(str(filename)))
        try:
            os.remove(target)
        except FileNotFoundError:
            return
        except OSError as exc:
            self.logger.warning("Could not remove upload %s: %s", filename, exc)

    @staticmethod
    def public_url(host_url: str, filename: str) -> str:
        return urljoin(host_url, f"uploads/{filename}")

    def store_profile_picture(self, image_file, host_url: str) -> Tuple[str, str]:
        """Save ``image_file`` and return ``(public_url, filename)``."""
        filename = self.save(image_file)
        return self.public_url(host_url, filename), filename
