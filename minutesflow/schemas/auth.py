from typing import List, Optional

from pydantic import BaseModel, Field


class UserLogin(BaseModel):
    """ログインリクエスト"""

    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class Token(BaseModel):
    """認証トークンレスポンス"""

    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


class TokenData(BaseModel):
    """JWTトークンのペイロード"""

    user_id: Optional[str] = None
    username: Optional[str] = None


class UserOut(BaseModel):
    """ユーザー情報レスポンス"""

    id: str
    username: str
    display_name: str
    emails: List[str] = Field(default_factory=list)

    class Config:
        from_attributes = True


class UserWithToken(BaseModel):
    """ログイン成功時のレスポンス（ユーザー情報 + トークン）"""

    user: UserOut
    token: Token
