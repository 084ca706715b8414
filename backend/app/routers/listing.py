from fastapi import APIRouter, Depends, HTTPException, Query
from typing import List, Optional
import logging

from app.auth.auth_handler import get_current_caller, get_optional_caller
from app.auth.policies import Caller
from app.db import get_secured_session, list_listings, stage_update
from app.models.listing import ListingCreate, ListingRead, ListingUpdate
from app.models.listing_db import Listing as DBListing

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/listing", tags=["Listing"])

# Routes hand the caller to the session untouched; the row policies decide.


@router.get("/", response_model=List[ListingRead])
def get_listings(
    q: Optional[str] = Query(default=None),
    category: Optional[str] = Query(default=None),
    caller: Optional[Caller] = Depends(get_optional_caller),
):
    with get_secured_session(caller) as session:
        listings = list_listings(session, q=q, category=category)
        return [ListingRead.model_validate(l) for l in listings]


@router.get("/my", response_model=List[ListingRead])
def get_my_listings(caller: Caller = Depends(get_current_caller)):
    with get_secured_session(caller) as session:
        listings = list_listings(session, owner_id=caller.user_id)
        return [ListingRead.model_validate(l) for l in listings]


@router.get("/{listing_id}", response_model=ListingRead)
def get_listing(listing_id: str, caller: Optional[Caller] = Depends(get_optional_caller)):
    with get_secured_session(caller) as session:
        listing = session.get(DBListing, listing_id)
        if not listing:
            raise HTTPException(status_code=404, detail="Listing not found")
        return ListingRead.model_validate(listing)


@router.post("/create", response_model=ListingRead, status_code=201)
def create_listing(data: ListingCreate, caller: Optional[Caller] = Depends(get_optional_caller)):
    with get_secured_session(caller) as session:
        listing = DBListing(**data.model_dump(mode="json"))
        session.add(listing)
        session.commit()
        session.refresh(listing)
        logger.info("Created listing %s", listing.id)
        return ListingRead.model_validate(listing)


@router.put("/{listing_id}", response_model=ListingRead)
def update_listing(listing_id: str, data: ListingUpdate, caller: Optional[Caller] = Depends(get_optional_caller)):
    with get_secured_session(caller) as session:
        listing = session.get(DBListing, listing_id)
        if not listing:
            raise HTTPException(status_code=404, detail="Listing not found")

        changes = {
            field: value
            for field, value in data.model_dump(mode="json", exclude_unset=True).items()
            if value is not None or field == "owner_id"
        }
        stage_update(session, listing, changes)
        session.commit()
        session.refresh(listing)
        logger.info("Updated listing %s", listing.id)
        return ListingRead.model_validate(listing)


@router.delete("/{listing_id}")
def delete_listing(listing_id: str, caller: Optional[Caller] = Depends(get_optional_caller)):
    # No delete policy exists, so the flush below is always refused.
    with get_secured_session(caller) as session:
        listing = session.get(DBListing, listing_id)
        if not listing:
            raise HTTPException(status_code=404, detail="Listing not found")
        session.delete(listing)
        session.commit()
    return {"message": "Listing deleted"}
