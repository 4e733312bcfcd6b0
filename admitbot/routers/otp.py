from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, EmailStr, Field

from .. import otp as otp_service
from ..mailer import MailError
from .auth import db_link

router = APIRouter(prefix="/api/otp", tags=["otp"])


class OtpSendBody(BaseModel):
    email: EmailStr

class OtpVerifyBody(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=4, max_length=12)


@router.post("/send")
def send_otp(body: OtpSendBody, db: db_link):
    try:
        otp_service.issue_otp(db, body.email)
    except MailError:
        raise HTTPException(status_code=500, detail="Failed to send OTP")
    return {"success": True, "message": "OTP sent successfully"}


@router.post("/verify")
def verify_otp(body: OtpVerifyBody, db: db_link):
    if not otp_service.consume_otp(db, body.email, body.otp):
        raise HTTPException(status_code=400, detail="Invalid or expired OTP")
    return {"success": True, "message": "OTP verified successfully"}
