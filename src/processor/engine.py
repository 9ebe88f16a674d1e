from dataclasses import dataclass

from loguru import logger
from PIL import Image

from core.config import Settings
from core.exceptions import InvalidProcessingType
from model.image import ProcessingType
from processor.operations import decode_image, encode_jpeg, fit, tile_watermark


@dataclass(frozen=True)
class ProcessingConfig:
    resize_width: int = 800
    resize_height: int = 600
    thumbnail_width: int = 200
    thumbnail_height: int = 150
    watermark_image_path: str | None = None
    watermark_opacity: int = 128  # 0~255
    output_quality: int = 95

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProcessingConfig":
        return cls(
            resize_width=settings.RESIZE_WIDTH,
            resize_height=settings.RESIZE_HEIGHT,
            thumbnail_width=settings.THUMBNAIL_WIDTH,
            thumbnail_height=settings.THUMBNAIL_HEIGHT,
            watermark_image_path=settings.WATERMARK_IMAGE_PATH,
            watermark_opacity=settings.WATERMARK_OPACITY,
            output_quality=settings.OUTPUT_QUALITY,
        )


class ImageProcessor:
    """decode -> process -> encode 세 단계를 제공한다.

    출력 포맷은 입력 포맷과 관계없이 항상 JPEG 이다.
    """

    OUTPUT_EXTENSION = ".jpg"

    def __init__(self, config: ProcessingConfig, watermark: Image.Image | None = None):
        self.config = config
        self.watermark = watermark if watermark is not None else _load_watermark(config.watermark_image_path)
        self._operations = {
            ProcessingType.RESIZE: self._resize,
            ProcessingType.THUMBNAIL: self._thumbnail,
            ProcessingType.WATERMARK: self._watermark,
        }
        logger.info(
            f"ImageProcessor ready: resize={config.resize_width}x{config.resize_height}, "
            f"thumbnail={config.thumbnail_width}x{config.thumbnail_height}, "
            f"watermark={'on' if self.watermark is not None else 'off'}, quality={config.output_quality}"
        )

    def decode(self, data: bytes) -> Image.Image:
        return decode_image(data)

    def process(self, image: Image.Image, processing_type: str) -> Image.Image:
        try:
            operation = self._operations[ProcessingType(processing_type)]
        except ValueError as e:
            raise InvalidProcessingType(f"알 수 없는 processing_type: {processing_type}") from e
        return operation(image)

    def encode(self, image: Image.Image) -> bytes:
        return encode_jpeg(image, self.config.output_quality)

    def _resize(self, image: Image.Image) -> Image.Image:
        if self.config.resize_width <= 0 or self.config.resize_height <= 0:
            logger.warning("resize box is not positive, returning original image")
        return fit(image, self.config.resize_width, self.config.resize_height)

    def _thumbnail(self, image: Image.Image) -> Image.Image:
        if self.config.thumbnail_width <= 0 or self.config.thumbnail_height <= 0:
            logger.warning("thumbnail box is not positive, returning original image")
        return fit(image, self.config.thumbnail_width, self.config.thumbnail_height)

    def _watermark(self, image: Image.Image) -> Image.Image:
        if self.watermark is None:
            logger.warning("no watermark image configured, returning original image")
            return image
        return tile_watermark(image, self.watermark, self.config.watermark_opacity / 255)


def _load_watermark(path: str | None) -> Image.Image | None:
    if not path:
        return None
    try:
        with Image.open(path) as mark:
            return mark.convert("RGBA")
    except OSError as e:
        logger.error(f"failed to load watermark image {path}: {e}")
        return None
