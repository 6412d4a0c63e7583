from fastapi import APIRouter, HTTPException, status

from app.schemas.contact import ContactRequest, ContactResponse
from app.services.email_service import EmailNotConfiguredError, EmailSendError, send_contact_email

router = APIRouter(tags=["contact"])


@router.post("", response_model=ContactResponse)
async def contact(data: ContactRequest):
    try:
        await send_contact_email(data.name, data.email, data.message)
    except EmailNotConfiguredError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="The contact form is not available right now."
        )
    except EmailSendError:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Could not send your message. Please try again later."
        )
    return ContactResponse(success=True, message="Your message has been sent.")
