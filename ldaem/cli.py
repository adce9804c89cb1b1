# ldaem/cli.py
"""
Train an LDA model from corpus and vocabulary files and dump it.

    ldaem-train --corpus docs.txt --vocab vocab.txt --output model.txt --num_topics 20
"""

import argparse
import logging
import sys
from typing import List, Optional

from ldaem.core.config import LdaConfig, get_settings
from ldaem.core.errors import LdaError
from ldaem.core.logging_config import configure_logging
from ldaem.ml.trainer import train
from ldaem.services import corpus_service, persistence_service

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Variational EM LDA training")
    parser.add_argument("--corpus", type=str, default=settings.corpus_path,
                        help="one document per line, whitespace-separated vocabulary indices")
    parser.add_argument("--vocab", type=str, default=settings.vocabulary_path,
                        help="one word per line")
    parser.add_argument("--output", type=str, default=settings.model_file,
                        help="path of the model dump")
    parser.add_argument("--log_dump", type=str, default=None,
                        help="optional path for the gamma/phi debug dump")
    parser.add_argument("--alpha_dump", type=str, default=None,
                        help="optional path for alpha alone, one line")
    parser.add_argument("--beta_dump", type=str, default=None,
                        help="optional path for beta alone, one topic per line")
    parser.add_argument("--message", type=str, default="",
                        help="free-text first line of the model dump")
    parser.add_argument("--num_topics", type=int, default=settings.num_topics)
    parser.add_argument("--initial_alpha", type=float, nargs="+", default=None,
                        help="starting alpha, one value per topic")
    parser.add_argument("--em_iters", type=int, default=settings.max_em_iterations)
    parser.add_argument("--em_tol", type=float, default=1e-4)
    parser.add_argument("--var_iters", type=int, default=settings.max_inference_iterations)
    parser.add_argument("--var_tol", type=float, default=1e-6)
    parser.add_argument("--workers", type=int, default=settings.inference_workers,
                        help="threads for the E-step")
    parser.add_argument("--time_limit", type=float, default=None,
                        help="wall-clock budget in seconds")
    parser.add_argument("--seed", type=int, default=settings.seed)
    parser.add_argument("--top_words", type=int, default=0,
                        help="print this many words per topic after training")
    parser.add_argument("--log_level", type=str, default=settings.log_level)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    if not args.corpus or not args.vocab or not args.output:
        logger.error("--corpus, --vocab and --output are required (or LDA_* settings)")
        return 2

    try:
        config = LdaConfig(
            num_topics=args.num_topics,
            initial_alpha=args.initial_alpha,
            max_em_iterations=args.em_iters,
            em_convergence_tolerance=args.em_tol,
            max_inference_iterations=args.var_iters,
            inference_convergence_tolerance=args.var_tol,
            inference_workers=args.workers,
            time_limit_seconds=args.time_limit,
            seed=args.seed,
        )
        vocabulary = corpus_service.load_vocabulary(args.vocab)
        corpus = corpus_service.load_corpus(args.corpus, vocab_size=len(vocabulary))
        model = train(corpus, config, vocabulary)
        message = args.message or f"LDA {model.num_topics} topics, {model.stopping_reason.value}"
        persistence_service.dump_model(model, args.output, message=message)
        if args.log_dump:
            persistence_service.dump_log(model, args.log_dump, message=message)
        if args.alpha_dump:
            persistence_service.dump_alpha(model, args.alpha_dump)
        if args.beta_dump:
            persistence_service.dump_beta(model, args.beta_dump)
    except (OSError, ValueError, LdaError) as exc:
        logger.error("training failed: %s", exc)
        return 1

    for topic_id, words in enumerate(model.top_topic_words(args.top_words) if args.top_words > 0 else []):
        print(f"Topic {topic_id}: " + " ".join(f"{word}({weight:.4f})" for word, weight in words))
    return 0


if __name__ == "__main__":
    sys.exit(main())
