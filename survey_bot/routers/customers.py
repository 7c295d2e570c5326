import logging

from fastapi import APIRouter, File, HTTPException, UploadFile

from survey_bot.dependencies import SettingsDep, SupabaseDep
from survey_bot.mappers.customer_csv import is_valid_phone, parse_csv, validate_customers
from survey_bot.schemas.responses import (
    CamelModel,
    CustomerCreatedResponse,
    CustomerRow,
    CustomerUploadResponse,
)
from survey_bot.schemas.supabase import Customer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/customers", tags=["customers"])


class CreateCustomerRequest(CamelModel):
    first_name: str | None = None
    last_name: str | None = None
    phone_number: str | None = None
    company_name: str | None = None
    campaign_id: str | None = None


def _is_csv(file: UploadFile) -> bool:
    return file.content_type == "text/csv" or (file.filename or "").lower().endswith(".csv")


@router.post("/upload", response_model=CustomerUploadResponse)
async def upload_customers(
    supabase: SupabaseDep,
    settings: SettingsDep,
    csv: UploadFile | None = File(None),
) -> CustomerUploadResponse:
    if csv is None:
        raise HTTPException(status_code=400, detail="CSV file is required")
    if not _is_csv(csv):
        raise HTTPException(status_code=400, detail="Only CSV files are allowed")

    raw = await csv.read(settings.csv_max_bytes + 1)
    if len(raw) > settings.csv_max_bytes:
        raise HTTPException(status_code=413, detail="CSV file is too large")

    records = parse_csv(raw.decode("utf-8-sig", errors="replace"))
    if not records:
        raise HTTPException(status_code=400, detail="No valid customers found in CSV")

    rows = validate_customers(records)
    errors: list[CustomerRow] = [r for r in rows if r.error]
    valid = [r for r in rows if not r.error]

    if not valid:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "No valid customers found",
                "details": [e.model_dump() for e in errors],
            },
        )

    inserted: list[Customer] = []
    for row in valid:
        try:
            customer = await supabase.create_customer(
                row.model_dump(exclude={"error"}, exclude_none=True)
            )
            inserted.append(customer)
        except Exception as exc:
            logger.error("Error inserting customer %s: %s", row.phone_number, exc)
            errors.append(row.model_copy(update={"error": str(exc) or "Database error"}))

    logger.info("CSV upload: %d rows, %d inserted, %d errors", len(records), len(inserted), len(errors))
    return CustomerUploadResponse(
        total=len(records),
        inserted=len(inserted),
        errors=len(errors),
        customers=inserted,
        error_details=errors,
    )


@router.post("", response_model=CustomerCreatedResponse)
async def create_customer(
    request: CreateCustomerRequest, supabase: SupabaseDep
) -> CustomerCreatedResponse:
    if not request.first_name or not request.phone_number:
        raise HTTPException(
            status_code=400, detail="First name and phone number are required"
        )
    if not is_valid_phone(request.phone_number):
        raise HTTPException(status_code=400, detail="Invalid phone number format")

    customer = await supabase.create_customer({
        "first_name": request.first_name,
        "last_name": request.last_name or "",
        "phone_number": request.phone_number,
        "company_name": request.company_name or "",
        **({"campaign_id": request.campaign_id} if request.campaign_id else {}),
    })
    return CustomerCreatedResponse(customer=customer)


@router.get("", response_model=list[Customer])
async def list_customers(supabase: SupabaseDep) -> list[Customer]:
    return await supabase.get_customers()
