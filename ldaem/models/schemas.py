from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, model_validator


class TrainPayload(BaseModel):
    texts: List[str] = Field(min_length=1)
    # external ids for the recommender, one per text
    external_ids: Optional[List[str]] = None
    num_topics: int = Field(default=10, ge=1, le=500)
    initial_alpha: Optional[List[float]] = None
    max_em_iterations: int = Field(default=50, ge=1, le=1000)
    max_inference_iterations: int = Field(default=20, ge=1, le=1000)
    em_convergence_tolerance: float = Field(default=1e-4, ge=0)
    seed: Optional[int] = None

    @model_validator(mode="after")
    def ensure_ids_align(self):
        if self.external_ids is not None and len(self.external_ids) != len(self.texts):
            raise ValueError("external_ids must have one entry per text")
        return self


class InferPayload(BaseModel):
    text: str = Field(min_length=1)


class TopicWords(BaseModel):
    topic_id: int
    words: List[Tuple[str, float]]


class TopicVector(BaseModel):
    topics: List[float]


class TrainResult(BaseModel):
    num_topics: int
    num_documents: int
    vocab_size: int
    stopping_reason: str
    em_iterations: int
