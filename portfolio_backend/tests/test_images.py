import unittest
from unittest.mock import MagicMock, patch

from portfolio_backend.images import (
    CLOUDINARY,
    IMAGEKIT,
    MAX_UPLOAD_BYTES,
    CloudinaryImageHost,
    ImageService,
    ImageUploadError,
    InMemoryImageHost,
    InvalidImageError,
    inspect_image,
    resized_image_url,
    safe_signature_folder,
    service_for_image_type,
)
from portfolio_backend.tests.support import image_bytes


class InspectImageTests(unittest.TestCase):
    def test_reads_dimensions_and_format(self):
        self.assertEqual(inspect_image(image_bytes(12, 8), "photo.png"), (12, 8, "png"))
        self.assertEqual(
            inspect_image(image_bytes(5, 5, "JPEG"), "photo.JPG"), (5, 5, "jpeg")
        )

    def test_rejects_other_extensions(self):
        with self.assertRaisesRegex(InvalidImageError, "Only image files"):
            inspect_image(image_bytes(), "notes.txt")

    def test_rejects_non_image_content(self):
        with self.assertRaisesRegex(InvalidImageError, "Only image files"):
            inspect_image(b"definitely not an image", "photo.png")

    def test_rejects_unsupported_image_format(self):
        with self.assertRaises(InvalidImageError):
            inspect_image(image_bytes(format="BMP"), "photo.png")

    def test_rejects_large_files(self):
        with self.assertRaisesRegex(InvalidImageError, "too large"):
            inspect_image(b"\0" * (MAX_UPLOAD_BYTES + 1), "photo.png")


class RoutingTests(unittest.TestCase):
    def test_service_for_image_type(self):
        for image_type in ("carousel", "hero", "case-study", "caseStudies"):
            self.assertEqual(service_for_image_type(image_type), CLOUDINARY)
        self.assertEqual(service_for_image_type("project"), IMAGEKIT)

    def test_safe_signature_folder(self):
        self.assertEqual(safe_signature_folder("portfolio/carousel"), "portfolio/carousel")
        self.assertEqual(safe_signature_folder("../secrets"), "portfolio")
        self.assertEqual(safe_signature_folder(None), "portfolio")


class ResizedImageUrlTests(unittest.TestCase):
    def test_cloudinary(self):
        url = "https://res.cloudinary.com/demo/image/upload/v1/portfolio/a.jpg"
        self.assertEqual(
            resized_image_url(url, 300, 200, crop="fill", quality="auto"),
            "https://res.cloudinary.com/demo/image/upload/c_fill,w_300,h_200,q_auto/v1/portfolio/a.jpg",
        )

    def test_imagekit(self):
        self.assertEqual(
            resized_image_url("https://ik.imagekit.io/demo/a.jpg", 300, 200),
            "https://ik.imagekit.io/demo/a.jpg?tr=w-300,h-200",
        )
        self.assertEqual(
            resized_image_url("https://ik.imagekit.io/demo/a.jpg?v=2", 300, None, format="webp"),
            "https://ik.imagekit.io/demo/a.jpg?v=2&tr=w-300,f-webp",
        )

    def test_other_urls_unchanged(self):
        self.assertEqual(resized_image_url("https://example.com/a.jpg", 1, 1), "https://example.com/a.jpg")
        self.assertEqual(resized_image_url("", 1, 1), "")


class ImageServiceTests(unittest.TestCase):
    def setUp(self):
        self.cloudinary = InMemoryImageHost(service=CLOUDINARY)
        self.imagekit = InMemoryImageHost(service=IMAGEKIT, base_url="https://ik.imagekit.io/demo")
        self.service = ImageService({CLOUDINARY: self.cloudinary, IMAGEKIT: self.imagekit})

    def test_project_images_go_to_imagekit(self):
        uploaded = self.service.upload(image_bytes(12, 8), file_name="photo.png")
        self.assertEqual(uploaded.service, IMAGEKIT)
        self.assertEqual(uploaded.public_id, "portfolio/project/photo")
        self.assertEqual(uploaded.url, "https://ik.imagekit.io/demo/portfolio/project/photo.png")
        self.assertEqual((uploaded.width, uploaded.height), (12, 8))
        self.assertIn("portfolio/project/photo", self.imagekit.stored)

    def test_forced_service_and_folder(self):
        uploaded = self.service.upload(
            image_bytes(),
            file_name="cover.png",
            image_type="project",
            folder="portfolio/caseStudies",
            metadata={"alt": "Cover"},
            force_service=CLOUDINARY,
        )
        self.assertEqual(uploaded.service, CLOUDINARY)
        stored = self.cloudinary.stored["portfolio/caseStudies/cover"]
        self.assertEqual(stored["metadata"], {"alt": "Cover"})

    def test_invalid_file_is_not_uploaded(self):
        with self.assertRaises(InvalidImageError):
            self.service.upload(b"text", file_name="notes.txt")
        self.assertEqual(self.imagekit.stored, {})

    def test_unconfigured_service(self):
        service = ImageService({})
        with self.assertRaises(ImageUploadError):
            service.upload(image_bytes(), file_name="photo.png")
        with self.assertRaises(ImageUploadError):
            service.upload_signature("portfolio")

    def test_list_and_delete(self):
        self.service.upload(image_bytes(), file_name="a.png", image_type="carousel")
        listed = self.service.list_folder("portfolio/carousel")
        self.assertEqual([i.public_id for i in listed], ["portfolio/carousel/a"])
        self.assertTrue(self.service.delete("portfolio/carousel/a"))
        self.assertEqual(self.service.list_folder("portfolio/carousel"), [])

    def test_signature_folder_is_sanitized(self):
        signature = self.service.upload_signature("elsewhere")
        self.assertEqual(signature["folder"], "portfolio")

    def test_status_reports_failing_host(self):
        broken = MagicMock()
        broken.ping.side_effect = RuntimeError("down")
        service = ImageService({CLOUDINARY: broken, IMAGEKIT: self.imagekit})
        status = service.status()
        self.assertEqual(status[CLOUDINARY]["status"], "unhealthy")
        self.assertEqual(status[IMAGEKIT]["status"], "healthy")


class CloudinaryImageHostTests(unittest.TestCase):
    def setUp(self):
        self.host = CloudinaryImageHost(cloud_name="demo", api_key="key", api_secret="secret")

    @patch("cloudinary.uploader.upload")
    def test_upload_maps_result(self, mock_upload):
        mock_upload.return_value = {
            "secure_url": "https://res.cloudinary.com/demo/image/upload/v1/portfolio/a.png",
            "public_id": "portfolio/a",
            "width": 640,
            "height": 480,
            "format": "png",
        }
        uploaded = self.host.upload(
            b"bytes", file_name="a.png", folder="portfolio", metadata={"alt": "A"}
        )
        self.assertEqual(uploaded.public_id, "portfolio/a")
        self.assertEqual((uploaded.width, uploaded.height), (640, 480))
        _, kwargs = mock_upload.call_args
        self.assertEqual(kwargs["folder"], "portfolio")
        self.assertEqual(kwargs["context"], {"alt": "A"})

    @patch("cloudinary.uploader.upload")
    def test_upload_failure(self, mock_upload):
        mock_upload.side_effect = Exception("rejected")
        with self.assertRaises(ImageUploadError):
            self.host.upload(b"bytes", file_name="a.png", folder="portfolio")

    @patch("cloudinary.uploader.destroy")
    def test_delete(self, mock_destroy):
        mock_destroy.return_value = {"result": "ok"}
        self.assertTrue(self.host.delete("portfolio/a"))
        mock_destroy.assert_called_once_with("portfolio/a")

    def test_upload_signature(self):
        signature = self.host.upload_signature("portfolio")
        self.assertEqual(signature["cloudName"], "demo")
        self.assertEqual(signature["apiKey"], "key")
        self.assertTrue(signature["signature"])


if __name__ == "__main__":
    unittest.main()
