from .accounts import AccountService
from .media import MediaUploadGateway, MediaAsset, UploadResult, UploadStatus
from .security import TokenSigner, hash_password, verify_password

__all__ = ["AccountService", "MediaUploadGateway", "MediaAsset", "UploadResult", "UploadStatus",
           "TokenSigner", "hash_password", "verify_password"]
