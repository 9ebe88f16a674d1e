from fastapi import Request

from service.image_service import ImageService


def get_image_service(request: Request) -> ImageService:
    """lifespan 에서 조립한 ImageService 를 꺼낸다."""
    return request.app.state.services.image_service
