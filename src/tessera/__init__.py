__all__ = [
    # Wire data
    "DataBytes",
    "DataConstr",
    "DataInt",
    "DataList",
    "DataMap",
    "WireNode",
    "SchemaValidationError",
    "node_from_json",
    "node_to_json",
    # Schemas
    "FieldEncoder",
    "Record",
    "Schema",
    "SchemaRegistry",
    "bytestring",
    "integer",
    "list_of",
    "map_of",
    "raw_data",
    "reference",
    "union",
    # Codec
    "Codec",
    "CodecError",
    "DecodeError",
    "EncodeError",
    "register_prelude",
    # Transactions
    "BuildError",
    "CompletedTransaction",
    "JsonRpcLedger",
    "Ledger",
    "LedgerError",
    "PendingTransaction",
    "TxDraft",
    "UTxO",
    # Test runs
    "ProtocolLimits",
    "Sequencer",
    "Status",
    "TestCase",
    "TestOutcome",
    "any_of",
    "log_results",
    "with_trace",
]

from .spec.data import (
    DataBytes,
    DataConstr,
    DataInt,
    DataList,
    DataMap,
    SchemaValidationError,
    WireNode,
    node_from_json,
    node_to_json,
)
from .spec.models import Record
from .spec.schemas import (
    FieldEncoder,
    Schema,
    SchemaRegistry,
    bytestring,
    integer,
    list_of,
    map_of,
    raw_data,
    reference,
    union,
)
from .spec.codec import Codec, CodecError, DecodeError, EncodeError
from .spec.prelude import register_prelude
from .pneuma.ledger import CompletedTransaction, Ledger, LedgerError, TxDraft, UTxO
from .pneuma.rpc import JsonRpcLedger
from .pneuma.tx import BuildError, PendingTransaction
from .theurgy.report import ProtocolLimits, log_results
from .theurgy.sequencer import Sequencer, Status, TestCase, TestOutcome, any_of, with_trace
