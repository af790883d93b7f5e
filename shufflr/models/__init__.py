from .admin_user import AdminUser
from .apikey import ApiKey
from .api_request import ApiRequest
from .image_file import ImageFile
from .setting import Setting

__all__ = ["AdminUser", "ApiKey", "ApiRequest", "ImageFile", "Setting"]
