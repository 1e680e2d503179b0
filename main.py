# main.py

from typing import Annotated

from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from app.api.models.user import UserOut
from app.api.routers import reminders
from app.core.auth import get_current_user, get_user_id
from app.core.settings import get_settings

# -------------------------------------------------------------------
# Cargar variables de entorno y app base
# -------------------------------------------------------------------
load_dotenv()

app = FastAPI(
    title="PetPals Reminders API",
    description="""
Supabase-backed reminders for pet owners (medication, vet visits, walks, grooming).

**What it does**
- **Auth & Security:** Supabase Auth JWT (HS256). Per-user Row-Level Security (RLS) on the `reminders` table.
- **Reminders:** Create, list, edit and delete reminders with a title, notes, a local date/time and an IANA time zone.
- **Recurrence:** Once, daily, weekly on selected weekdays (Sunday=0 .. Saturday=6) or monthly.
  Completing a recurring reminder closes the current occurrence and creates the next one.
- **Status:** Each reminder is reported as `upcoming`, `overdue` or `completed`, with a human label ("Today at 9:00 AM").

**Notes**
- Use the Swagger **Authorize** button to paste your Bearer token before trying endpoints.
- Install `supabase/reminders.sql` to get the transactional `complete_reminder` RPC; without it completion falls back to two sequential writes.
""",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -------------------------------------------------------------------
# Routers protegidos bajo /api
# -------------------------------------------------------------------
app.include_router(reminders.router, prefix="/api", dependencies=[Depends(get_user_id)])


# -------------------------------------------------------------------
# Endpoints publicos
# -------------------------------------------------------------------
@app.get("/")
def read_root():
    return {"message": "Welcome to PetPals Reminders API"}


@app.get("/users/me", response_model=UserOut, tags=["[DEBUG] Whoami"])
async def read_current_user(current_user: Annotated[UserOut, Depends(get_current_user)]):
    return current_user
