"""
순수 이미지 처리 함수.
디코딩/인코딩을 제외한 모든 함수는 PIL.Image를 받아서 PIL.Image를 반환한다.
"""

import io
import math

from PIL import Image, ImageOps, UnidentifiedImageError

from core.exceptions import InvalidImageData, ProcessingFailed


def decode_image(data: bytes) -> Image.Image:
    """바이트를 디코딩하고 EXIF Orientation 에 맞게 회전시킨다."""
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
        image = ImageOps.exif_transpose(image)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise InvalidImageData(f"이미지 디코딩 실패: {e}") from e

    if image.width == 0 or image.height == 0:
        raise InvalidImageData("디코딩된 이미지의 크기가 0입니다")

    if image.mode not in ("RGB", "RGBA"):
        image = image.convert("RGBA" if _has_alpha(image) else "RGB")
    return image


def encode_jpeg(image: Image.Image, quality: int = 95) -> bytes:
    if image.width == 0 or image.height == 0:
        raise ProcessingFailed("처리 결과 이미지의 크기가 0입니다")

    if _has_alpha(image):
        rgba = image.convert("RGBA")
        flattened = Image.new("RGB", rgba.size, "white")
        flattened.paste(rgba, mask=rgba.getchannel("A"))
        image = flattened
    elif image.mode != "RGB":
        image = image.convert("RGB")

    buf = io.BytesIO()
    try:
        image.save(buf, "JPEG", quality=quality)
    except (OSError, ValueError) as e:
        raise ProcessingFailed(f"JPEG 인코딩 실패: {e}") from e

    data = buf.getvalue()
    if not data:
        raise ProcessingFailed("인코딩 결과가 비어 있습니다")
    return data


def fit(image: Image.Image, width: int, height: int) -> Image.Image:
    """비율을 유지한 채 width x height 상자 안에 맞춘다.

    - 상자 크기가 0 이하이면 원본을 그대로 반환
    - 이미 상자 안에 들어가면 확대하지 않는다
    - 잘라내지 않는다: 한쪽 변이 상자와 같고 다른 변은 상자 이하
    """
    if width <= 0 or height <= 0:
        return image

    src_w, src_h = image.size
    if src_w <= width and src_h <= height:
        return image.copy()

    src_aspect = src_w / src_h
    if src_aspect > width / height:
        new_w = width
        new_h = max(round(width / src_aspect), 1)
    else:
        new_h = height
        new_w = max(round(height * src_aspect), 1)

    return image.resize((new_w, new_h), Image.LANCZOS)


def tile_watermark(image: Image.Image, mark: Image.Image, opacity: float = 0.5) -> Image.Image:
    """워터마크 이미지를 -45도 회전시켜 대각선 방향으로 반복해서 찍는다.

    워터마크 폭은 대상 폭의 1/4 (최소 10px). 좌상단 바깥(-rw, -rh)에서
    우하단 (width, height)까지 step 간격으로 선형 보간한 위치에 합성한다.
    """
    width, height = image.size
    opacity = min(max(opacity, 0.0), 1.0)

    mark_w = max(width // 4, 10)
    mark_h = max(round(mark.height * mark_w / mark.width), 1)
    scaled = mark.convert("RGBA").resize((mark_w, mark_h), Image.LANCZOS)
    if opacity < 1.0:
        scaled.putalpha(scaled.getchannel("A").point(lambda a: round(a * opacity)))

    rotated = scaled.rotate(-45, resample=Image.BICUBIC, expand=True)
    rot_w, rot_h = rotated.size

    diag = math.hypot(width, height) + rot_w
    step = max(rot_w / 2 + 20, 10)
    count = int(diag / step) + 2

    result = image.convert("RGBA")
    for i in range(count + 1):
        t = i / count
        x = round(-rot_w + t * (width + rot_w))
        y = round(-rot_h + t * (height + rot_h))
        _composite_clipped(result, rotated, x, y)

    if image.mode != "RGBA":
        result = result.convert("RGB")
    return result


def _composite_clipped(base: Image.Image, overlay: Image.Image, x: int, y: int) -> None:
    # alpha_composite 는 음수 dest 를 받지 않으므로 overlay 쪽을 잘라서 맞춘다
    src_x, src_y = max(-x, 0), max(-y, 0)
    dst_x, dst_y = max(x, 0), max(y, 0)
    if src_x >= overlay.width or src_y >= overlay.height:
        return
    if dst_x >= base.width or dst_y >= base.height:
        return
    base.alpha_composite(overlay, dest=(dst_x, dst_y), source=(src_x, src_y))


def _has_alpha(image: Image.Image) -> bool:
    return image.mode in ("RGBA", "LA", "PA") or "transparency" in image.info
