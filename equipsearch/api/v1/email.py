from fastapi import APIRouter, Depends

from equipsearch.api.deps import get_email_client
from equipsearch.common.exceptions import ExternalServiceError
from equipsearch.integrations.sendgrid import EmailClient, EmailPayload

router = APIRouter(prefix="/email", tags=["Email"])


@router.post("/send")
async def send_email(payload: EmailPayload, client: EmailClient = Depends(get_email_client)):
    result = await client.submit(payload)
    if result["status"] != "sent":
        raise ExternalServiceError("sendgrid", result.get("error"))
    return {"success": True, "messageId": result["message_id"]}
