from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings


load_dotenv()

DEFAULT_SEED = 10701


class LdaConfig(BaseModel):
    """
    Hyperparameters and stopping criteria for variational EM.
    """

    num_topics: int = Field(default=100, ge=1)
    # None means seeded-random alpha; there is no inferred vector default.
    initial_alpha: Optional[List[float]] = None
    max_inference_iterations: int = Field(default=20, ge=1)
    inference_convergence_tolerance: float = Field(default=1e-6, gt=0)
    max_em_iterations: int = Field(default=100, ge=1)
    em_convergence_tolerance: float = Field(default=1e-4, ge=0)

    max_newton_iterations: int = Field(default=100, ge=1)
    newton_tolerance: float = Field(default=1e-8, gt=0)
    max_newton_backtracks: int = Field(default=30, ge=0)
    seed: int = DEFAULT_SEED
    beta_smoothing: float = Field(default=0.0, ge=0)
    inference_workers: int = Field(default=1, ge=1)
    time_limit_seconds: Optional[float] = Field(default=None, gt=0)

    @model_validator(mode="after")
    def check_initial_alpha(self):
        if self.initial_alpha is None:
            return self
        if len(self.initial_alpha) != self.num_topics:
            raise ValueError(
                f"initial_alpha has {len(self.initial_alpha)} entries, expected num_topics={self.num_topics}"
            )
        if any(not value > 0 for value in self.initial_alpha):
            raise ValueError("initial_alpha entries must be strictly positive")
        return self


class Settings(BaseSettings):
    log_level: str = "INFO"
    corpus_path: Optional[str] = None
    vocabulary_path: Optional[str] = None
    id_map_path: Optional[str] = None
    model_file: Optional[str] = None

    num_topics: int = 20
    max_em_iterations: int = 100
    max_inference_iterations: int = 20
    inference_workers: int = 1
    seed: int = DEFAULT_SEED

    class Config:
        # LDA_NUM_TOPICS, LDA_MODEL_FILE, ... in the environment or .env
        env_prefix = "LDA_"
        case_sensitive = False

    def lda_config(self, **overrides) -> LdaConfig:
        values = {
            "num_topics": self.num_topics,
            "max_em_iterations": self.max_em_iterations,
            "max_inference_iterations": self.max_inference_iterations,
            "inference_workers": self.inference_workers,
            "seed": self.seed,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return LdaConfig(**values)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
