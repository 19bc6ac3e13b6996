import logging

from fastapi import APIRouter, Depends, File, UploadFile

from psychprep.auth.gate import get_store, require_admin
from psychprep.config import settings
from psychprep.content.parsing import parse_scenarios, parse_word_list
from psychprep.content.schemas import (
    ActiveUpdate,
    Persona,
    PublicKind,
    QuestionCreate,
    ScenarioBatch,
    ScenarioCreate,
    TATBatch,
    TATCreate,
    WordBatch,
    WordCreate,
)
from psychprep.db import ContentStore
from psychprep.errors import NotFoundError, ValidationError
from psychprep.models import ContentKind, PromptRecord, UserAccount
from psychprep.sampler import sample

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["content"])


def _dump(records: list[PromptRecord]) -> list[dict]:
    return [record.to_dict() for record in records]


def _merged(added: list[PromptRecord], noun: str) -> dict:
    return {
        "success": True,
        "message": f"{len(added)} {noun} added successfully",
        "added": _dump(added),
    }


async def _read_text(file: UploadFile) -> str:
    raw = await file.read()
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise ValidationError("Invalid data", errors={"file": "File must be UTF-8 text"})


# TAT


@router.get("/tat")
def list_tat(store: ContentStore = Depends(get_store)):
    return _dump(store.list_content(ContentKind.TAT, active_only=True))


@router.post("/tat", status_code=201)
def create_tat(
    payload: TATBatch | TATCreate,
    store: ContentStore = Depends(get_store),
    admin: UserAccount = Depends(require_admin),
):
    if isinstance(payload, TATCreate):
        return store.create_content(ContentKind.TAT, payload.image_url, payload.active).to_dict()

    added = store.merge_content(ContentKind.TAT, [item.image_url for item in payload])
    inactive = {item.image_url for item in payload if not item.active}
    for record in added:
        if record.payload in inactive:
            record.active = False
            store.set_active(ContentKind.TAT, record.id, False)
    return _merged(added, "images")


# WAT


@router.get("/wat")
def list_wat(store: ContentStore = Depends(get_store)):
    words = store.list_content(ContentKind.WAT, active_only=True)
    return _dump(sample(words, settings.sample_size))


@router.post("/wat", status_code=201)
def create_wat(
    payload: WordBatch | WordCreate,
    store: ContentStore = Depends(get_store),
    admin: UserAccount = Depends(require_admin),
):
    if isinstance(payload, WordCreate):
        return store.create_content(ContentKind.WAT, payload.word, payload.active).to_dict()
    added = store.merge_content(ContentKind.WAT, payload.words)
    return _merged(added, "words")


@router.post("/wat/file", status_code=201)
async def upload_wat_file(
    file: UploadFile = File(...),
    store: ContentStore = Depends(get_store),
    admin: UserAccount = Depends(require_admin),
):
    words = parse_word_list(await _read_text(file))
    if not words:
        raise ValidationError("No words found in file")
    added = store.merge_content(ContentKind.WAT, words)
    return _merged(added, "words")


# SRT


@router.get("/srt")
def list_srt(store: ContentStore = Depends(get_store)):
    scenarios = store.list_content(ContentKind.SRT, active_only=True)
    return _dump(sample(scenarios, settings.sample_size))


@router.post("/srt", status_code=201)
def create_srt(
    payload: ScenarioBatch | ScenarioCreate,
    store: ContentStore = Depends(get_store),
    admin: UserAccount = Depends(require_admin),
):
    if isinstance(payload, ScenarioCreate):
        return store.create_content(ContentKind.SRT, payload.scenario, payload.active).to_dict()
    added = store.merge_content(ContentKind.SRT, payload.scenarios)
    return _merged(added, "scenarios")


@router.post("/srt/file", status_code=201)
async def upload_srt_file(
    file: UploadFile = File(...),
    store: ContentStore = Depends(get_store),
    admin: UserAccount = Depends(require_admin),
):
    scenarios = parse_scenarios(await _read_text(file))
    if not scenarios:
        raise ValidationError("No scenarios found in file")
    added = store.merge_content(ContentKind.SRT, scenarios)
    return _merged(added, "scenarios")


# SDT


@router.get("/sdt/{persona}")
def list_sdt(persona: Persona, store: ContentStore = Depends(get_store)):
    return _dump(store.list_content(persona.kind, active_only=True))


@router.post("/sdt/{persona}", status_code=201)
def create_sdt(
    persona: Persona,
    payload: QuestionCreate,
    store: ContentStore = Depends(get_store),
    admin: UserAccount = Depends(require_admin),
):
    return store.create_content(persona.kind, payload.question, payload.active).to_dict()


@router.patch("/sdt/{persona}/{record_id}")
def update_sdt(
    persona: Persona,
    record_id: int,
    payload: ActiveUpdate,
    store: ContentStore = Depends(get_store),
    admin: UserAccount = Depends(require_admin),
):
    return _set_active(store, persona.kind, record_id, payload.active)


@router.delete("/sdt/{persona}/{record_id}")
def delete_sdt(
    persona: Persona,
    record_id: int,
    store: ContentStore = Depends(get_store),
    admin: UserAccount = Depends(require_admin),
):
    return _delete(store, persona.kind, record_id)


# Shared record mutation


def _set_active(store: ContentStore, kind: ContentKind, record_id: int, active: bool) -> dict:
    record = store.set_active(kind, record_id, active)
    if record is None:
        raise NotFoundError("Content not found")
    logger.info(f"Set {kind.value} {record_id} active={active}")
    return record.to_dict()


def _delete(store: ContentStore, kind: ContentKind, record_id: int) -> dict:
    if not store.delete_content(kind, record_id):
        raise NotFoundError("Content not found")
    logger.info(f"Deleted {kind.value} {record_id}")
    return {"success": True}


@router.patch("/{kind}/{record_id}")
def update_content(
    kind: PublicKind,
    record_id: int,
    payload: ActiveUpdate,
    store: ContentStore = Depends(get_store),
    admin: UserAccount = Depends(require_admin),
):
    return _set_active(store, kind.kind, record_id, payload.active)


@router.delete("/{kind}/{record_id}")
def delete_content(
    kind: PublicKind,
    record_id: int,
    store: ContentStore = Depends(get_store),
    admin: UserAccount = Depends(require_admin),
):
    return _delete(store, kind.kind, record_id)


@router.get("/admin/content/{kind}")
def list_all_content(
    kind: ContentKind,
    store: ContentStore = Depends(get_store),
    admin: UserAccount = Depends(require_admin),
):
    """Every record of a kind, inactive ones included."""
    return _dump(store.list_content(kind))
