# ldaem/routers/topics.py
from typing import List

from fastapi import APIRouter, HTTPException, Query
from pydantic import ValidationError

from ldaem.core.config import LdaConfig
from ldaem.core.errors import LdaError
from ldaem.models.schemas import InferPayload, TopicVector, TopicWords, TrainPayload, TrainResult
from ldaem.services import topic_service
from ldaem.services.topic_service import ModelNotReadyError

router = APIRouter(prefix="/topics", tags=["topics"])


@router.post("/train", response_model=TrainResult)
def train(payload: TrainPayload):
    try:
        overrides = {"seed": payload.seed} if payload.seed is not None else {}
        config = LdaConfig(
            num_topics=payload.num_topics,
            initial_alpha=payload.initial_alpha,
            max_em_iterations=payload.max_em_iterations,
            max_inference_iterations=payload.max_inference_iterations,
            em_convergence_tolerance=payload.em_convergence_tolerance,
            **overrides,
        )
        model = topic_service.train_from_texts(payload.texts, config, external_ids=payload.external_ids)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except (ValueError, LdaError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:  # noqa: BLE001
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return TrainResult(
        num_topics=model.num_topics,
        num_documents=model.num_documents,
        vocab_size=model.vocab_size,
        stopping_reason=model.stopping_reason.value,
        em_iterations=model.em_iterations,
    )


@router.get("/status")
def status():
    return topic_service.status()


@router.get("/words", response_model=List[TopicWords])
def words(k: int = Query(default=topic_service.DEFAULT_TOP_WORDS, ge=1, le=1000)):
    try:
        return topic_service.describe_topics(k)
    except ModelNotReadyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@router.get("/documents/{document_index}", response_model=TopicVector)
def document_topics(document_index: int):
    try:
        return TopicVector(topics=topic_service.document_topics(document_index))
    except ModelNotReadyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@router.get("/external/{external_id}", response_model=TopicVector)
def external_topics(external_id: str):
    """
    Topic vector for a recommender-side id; all zeros when the id is unknown.
    """
    try:
        return TopicVector(topics=topic_service.external_topics(external_id))
    except ModelNotReadyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@router.post("/infer", response_model=TopicVector)
def infer(payload: InferPayload):
    try:
        return TopicVector(topics=topic_service.infer_text(payload.text))
    except ModelNotReadyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except Exception as exc:  # noqa: BLE001
        raise HTTPException(status_code=500, detail=str(exc)) from exc
