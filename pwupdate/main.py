import logging
from typing import Any, List

from fastapi import Body, FastAPI, File, HTTPException, UploadFile

from .config import configure_logging, load_settings
from .errors import CsvReadError, NoRecordsError
from .models import HealthResponse, LogEvent, OpenCsvRequest, TaggedResult
from .roster import coerce_records, parse_csv_bytes, read_roster_file
from .runner import UpdateOrchestrator
from .store import RecordStore

settings = load_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="password-update-tool",
    description="Roster import and PowerShell password updates",
    version="0.1.0",
)
app.state.settings = settings
app.state.store = RecordStore()


@app.get("/health", response_model=HealthResponse)
def health():
    return {"ok": True}


@app.post("/csv/upload", response_model=TaggedResult, response_model_exclude_none=True)
async def upload_csv(file: UploadFile = File(...)):
    if not file.filename.lower().endswith(".csv"):
        raise HTTPException(status_code=422, detail="Only CSV files are supported")

    raw = await file.read()
    count = app.state.store.replace(parse_csv_bytes(raw))
    return TaggedResult(status="ok", count=count)


@app.post("/csv/open", response_model=TaggedResult, response_model_exclude_none=True)
def open_csv(request: OpenCsvRequest):
    if not request.path:
        return TaggedResult(status="cancelled")

    try:
        records = read_roster_file(request.path)
    except CsvReadError as exc:
        logger.warning("%s", exc)
        return TaggedResult(status="error", message=str(exc))

    count = app.state.store.replace(records)
    return TaggedResult(status="ok", count=count)


@app.get("/csv/data", response_model=TaggedResult, response_model_exclude_none=True)
def get_csv_data():
    return TaggedResult(status="ok", data=list(app.state.store.snapshot()))


@app.put("/csv/data", response_model=TaggedResult, response_model_exclude_none=True)
def set_csv_data(payload: Any = Body(None)):
    if not isinstance(payload, list):
        return TaggedResult(status="error", message="Invalid data")

    count = app.state.store.replace(coerce_records(payload))
    return TaggedResult(status="ok", count=count)


@app.post("/run", response_model=TaggedResult, response_model_exclude_none=True)
def run_password_update():
    log: List[LogEvent] = []
    orchestrator = UpdateOrchestrator(app.state.settings, on_event=log.append)

    try:
        outcome = orchestrator.run(app.state.store.snapshot())
    except NoRecordsError as exc:
        return TaggedResult(status="error", message=str(exc))
    except Exception as exc:
        logger.exception("password update failed")
        return TaggedResult(status="error", message=str(exc) or "Fehler beim Ausführen")

    if outcome.error is not None:
        return TaggedResult(
            status="error",
            message=outcome.error,
            failed_users=outcome.failed_identities,
            exit_code=outcome.exit_code,
            log=log,
        )

    return TaggedResult(
        status="ok" if outcome.succeeded else "failed",
        failed_users=outcome.failed_identities,
        exit_code=outcome.exit_code,
        log=log,
    )
