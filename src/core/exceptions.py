"""앱 전역 커스텀 예외 클래스.

AppException을 상속하면 전역 핸들러(error_handlers.py)가 자동으로
{"error_code": "...", "message": "..."} 형식의 JSON 응답을 생성한다.
워커 쪽에서는 같은 예외가 레코드의 error_message로 기록된다.
"""


class AppException(Exception):
    """앱 전역 베이스 예외.

    서브클래스에서 status_code, error_code, message를 클래스 변수로 정의하면
    전역 핸들러가 해당 값을 읽어 HTTP 응답을 생성한다.
    """

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"
    message: str = "서버 내부 오류가 발생했습니다"

    def __init__(self, message: str | None = None):
        if message:
            self.message = message
        super().__init__(self.message)


# --- 이미지 레코드 ---


class ImageNotFound(AppException):
    status_code = 404
    error_code = "IMAGE_NOT_FOUND"
    message = "이미지를 찾을 수 없습니다"


class ImageNotProcessed(AppException):
    status_code = 400
    error_code = "IMAGE_NOT_PROCESSED"
    message = "아직 처리되지 않은 이미지입니다"


class AlreadyProcessing(AppException):
    status_code = 409
    error_code = "ALREADY_PROCESSING"
    message = "이미 처리 중이거나 처리가 끝난 이미지입니다"


# --- 업로드 검증 ---


class InvalidFormat(AppException):
    status_code = 400
    error_code = "INVALID_FORMAT"
    message = "지원하지 않는 이미지 형식입니다"


class FileTooLarge(AppException):
    status_code = 400
    error_code = "FILE_TOO_LARGE"
    message = "파일 크기가 허용 한도를 초과했습니다"


class InvalidProcessingType(AppException):
    status_code = 400
    error_code = "INVALID_PROCESSING_TYPE"
    message = "processing_type은 resize, thumbnail, watermark 중 하나여야 합니다"


# --- 이미지 처리 ---


class InvalidImageData(AppException):
    status_code = 422
    error_code = "INVALID_IMAGE_DATA"
    message = "이미지 데이터를 해석할 수 없습니다"


class ProcessingFailed(AppException):
    status_code = 500
    error_code = "PROCESSING_FAILED"
    message = "이미지 처리에 실패했습니다"


# --- 인프라 ---


class StorageFailed(AppException):
    status_code = 500
    error_code = "STORAGE_FAILED"
    message = "파일 저장소 작업에 실패했습니다"


class ObjectNotFound(StorageFailed):
    """저장소에 객체가 없음. 전송 오류(StorageFailed)와 구분된다."""

    status_code = 404
    error_code = "OBJECT_NOT_FOUND"
    message = "저장소에서 파일을 찾을 수 없습니다"


class QueueFailed(AppException):
    status_code = 503
    error_code = "QUEUE_FAILED"
    message = "작업 큐 전송에 실패했습니다"
