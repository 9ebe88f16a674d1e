import mimetypes
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Query, Request, Response, UploadFile

from core.dependencies import get_image_service
from model.image import ProcessingStatus
from router.schemas import ImageListResponse, ImageResponse
from service.image_service import DEFAULT_LIST_LIMIT, ImageService, normalize_page

router = APIRouter(tags=["images"])


@router.post("/upload", response_model=ImageResponse, status_code=201)
def upload_image(
    request: Request,
    image: UploadFile = File(...),
    processing_type: str = Form("resize"),
    service: ImageService = Depends(get_image_service),
):
    """원본을 저장하고 처리 작업을 큐에 넣는다. 결과는 /image/{id}/info 로 폴링한다."""
    size = image.size
    if size is None:
        image.file.seek(0, 2)
        size = image.file.tell()
        image.file.seek(0)

    record = service.upload_image(
        filename=image.filename or "unknown",
        mime_type=image.content_type or "application/octet-stream",
        size=size,
        stream=image.file,
        processing_type=processing_type,
    )
    return ImageResponse.from_record(record, str(request.base_url))


@router.get("/images", response_model=ImageListResponse)
def list_images(
    request: Request,
    limit: int = Query(DEFAULT_LIST_LIMIT),
    offset: int = Query(0),
    status: ProcessingStatus | None = Query(None),
    service: ImageService = Depends(get_image_service),
):
    limit, offset = normalize_page(limit, offset)
    records = service.list_images(limit, offset, status)
    base_url = str(request.base_url)
    images = [ImageResponse.from_record(r, base_url) for r in records]
    return ImageListResponse(images=images, total=len(images), limit=limit, offset=offset)


@router.get("/image/{image_id}/info", response_model=ImageResponse)
def get_image(
    image_id: str,
    request: Request,
    service: ImageService = Depends(get_image_service),
):
    return ImageResponse.from_record(service.get_image(image_id), str(request.base_url))


@router.get("/image/{image_id}")
def download_processed(image_id: str, service: ImageService = Depends(get_image_service)):
    return _file_response(service, image_id, use_original=False)


@router.get("/image/{image_id}/original")
def download_original(image_id: str, service: ImageService = Depends(get_image_service)):
    return _file_response(service, image_id, use_original=True)


@router.delete("/image/{image_id}")
def delete_image(image_id: str, service: ImageService = Depends(get_image_service)):
    service.delete_image(image_id)
    return {"detail": "Deleted"}


def _file_response(service: ImageService, image_id: str, use_original: bool) -> Response:
    stream, filename = service.get_image_file(image_id, use_original=use_original)
    with stream:
        content = stream.read()

    media_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f"inline; filename*=UTF-8''{quote(filename)}"},
    )
