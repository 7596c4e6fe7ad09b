"""
Batch pipeline over a full document set.

Phases run in order and each completes for every document before the next
starts: build, term dates + payments, amendment merge, deed merge, QC.
A failure on one document is logged and never aborts the batch.
"""

import logging
from typing import Callable, List, Optional

from .amendments import merge_amendments, merge_deeds
from .builder import build_document
from .fact_map import FactAccessors
from .loader import Dataset, RawDocument
from .lookups import Lookups
from .models import JupiterDoc
from .payments import calc_payments
from .qc import QCEngine
from .terms import calc_term_dates

logger = logging.getLogger(__name__)


def _calculate(doc: JupiterDoc) -> JupiterDoc:
    return calc_payments(calc_term_dates(doc))


class JupiterPipeline:
    """Turns raw documents into computed, QC'd JupiterDocs"""

    def __init__(self, lookups: Lookups, accessors: FactAccessors, qc_engine: QCEngine):
        self.lookups = lookups
        self.accessors = accessors
        self.qc_engine = qc_engine

    @classmethod
    def from_dataset(
        cls,
        dataset: Dataset,
        fact_map_file: Optional[str] = None,
        qc_rules_file: Optional[str] = None,
    ) -> "JupiterPipeline":
        """
        Build a pipeline from a dataset's reference collections.

        Args:
            dataset: Loaded collections
            fact_map_file: Optional fact map override
            qc_rules_file: Optional QC rules override

        Raises:
            ConfigurationError: If a config file is malformed
        """
        lookups = Lookups.from_dataset(dataset)
        return cls(lookups, FactAccessors.load(lookups, fact_map_file), QCEngine(qc_rules_file))

    def _apply(self, phase: str, func: Callable[..., JupiterDoc], doc: JupiterDoc, *args) -> JupiterDoc:
        try:
            return func(doc, *args)
        except Exception:
            logger.exception("%s failed for document %s; keeping previous state", phase, doc.id)
            return doc

    def build(self, raw_documents: List[RawDocument]) -> List[JupiterDoc]:
        docs = []
        for raw in raw_documents:
            try:
                docs.append(build_document(raw, self.lookups, self.accessors))
            except Exception:
                logger.exception("Build failed for document %s; skipping", raw.id)
        return docs

    def run(self, raw_documents: List[RawDocument]) -> List[JupiterDoc]:
        """
        Run every phase over the document set.

        Args:
            raw_documents: Raw documents from the collaborator

        Returns:
            Computed documents in input order
        """
        docs = self.build(raw_documents)
        logger.info("Built %d of %d documents", len(docs), len(raw_documents))

        docs = [self._apply("Calculation", _calculate, d) for d in docs]

        # merges search the whole set, so each reads the previous phase's snapshot
        priced = list(docs)
        docs = [self._apply("Amendment merge", merge_amendments, d, priced) for d in priced]

        amended = list(docs)
        docs = [self._apply("Deed merge", merge_deeds, d, amended) for d in amended]

        docs = [self._apply("QC", self.qc_engine.qc, d) for d in docs]

        flagged = sum(1 for d in docs if d.qc_flags)
        logger.info("Processed %d documents (%d with QC flags)", len(docs), flagged)
        return docs


def process_dataset(
    dataset: Dataset,
    fact_map_file: Optional[str] = None,
    qc_rules_file: Optional[str] = None,
) -> List[JupiterDoc]:
    """Convenience wrapper: build a pipeline for a dataset and run it"""
    pipeline = JupiterPipeline.from_dataset(dataset, fact_map_file, qc_rules_file)
    return pipeline.run(dataset.documents)
