"""
JSON Schema Contract Validators

Модуль для валидации JSON payload'ов ledger согласно формальным JSON Schema
контрактам. Использует библиотеку jsonschema для проверки соответствия данных схемам.

Схемы (поставляются вместе с пакетом, schema/):
- transaction_event.json (входящее событие BUY/SELL/DIVIDEND)
- position_snapshot.json (исходящий snapshot позиции)
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional

import jsonschema
from jsonschema import Draft202012Validator

from ..domain.transaction import Transaction


# =============================================================================
# SCHEMA LOADER
# =============================================================================


class SchemaLoader:
    """
    Загрузчик JSON Schema файлов.

    По умолчанию читает схемы из каталога schema/ рядом с этим модулем.
    """

    def __init__(self, schema_dir: Optional[Path] = None):
        self._schema_dir = schema_dir or Path(__file__).parent / "schema"
        if not self._schema_dir.exists():
            raise RuntimeError(f"Schema directory not found: {self._schema_dir}")

        # Кэш загруженных схем
        self._schemas: Dict[str, Dict[str, Any]] = {}

    @property
    def schema_dir(self) -> Path:
        return self._schema_dir

    def load_schema(self, schema_name: str) -> Dict[str, Any]:
        """
        Загрузка JSON Schema файла.

        Args:
            schema_name: Имя схемы без расширения (например, 'transaction_event')

        Returns:
            Загруженная схема как dict

        Raises:
            FileNotFoundError: Если файл схемы не найден
            ValueError: Если схема не проходит meta-validation
        """
        if schema_name in self._schemas:
            return self._schemas[schema_name]

        schema_path = self._schema_dir / f"{schema_name}.json"
        if not schema_path.exists():
            raise FileNotFoundError(f"Schema not found: {schema_path}")

        with open(schema_path, "r", encoding="utf-8") as f:
            schema = json.load(f)

        # Валидируем саму схему (meta-validation)
        try:
            Draft202012Validator.check_schema(schema)
        except jsonschema.SchemaError as e:
            raise ValueError(f"Invalid JSON Schema in {schema_name}.json: {e}") from e

        self._schemas[schema_name] = schema
        return schema


# Глобальный экземпляр загрузчика
_SCHEMA_LOADER = SchemaLoader()


# =============================================================================
# CONTRACT VALIDATORS
# =============================================================================


class ContractValidator:
    """
    Базовый класс для валидаторов контрактов.

    Инкапсулирует логику валидации данных против JSON Schema.
    """

    def __init__(self, schema_name: str, loader: Optional[SchemaLoader] = None):
        self.schema_name = schema_name
        self.schema = (loader or _SCHEMA_LOADER).load_schema(schema_name)
        self.validator = Draft202012Validator(self.schema)

    def validate(self, data: Dict[str, Any]) -> None:
        """
        Валидация данных против схемы.

        Raises:
            jsonschema.ValidationError: Если данные не соответствуют схеме
        """
        self.validator.validate(data)

    def is_valid(self, data: Dict[str, Any]) -> bool:
        return self.validator.is_valid(data)

    def iter_errors(self, data: Dict[str, Any]):
        return self.validator.iter_errors(data)


class TransactionEventValidator(ContractValidator):
    """Валидатор для transaction_event контракта."""

    def __init__(self, loader: Optional[SchemaLoader] = None):
        super().__init__("transaction_event", loader)


class PositionSnapshotValidator(ContractValidator):
    """Валидатор для position_snapshot контракта."""

    def __init__(self, loader: Optional[SchemaLoader] = None):
        super().__init__("position_snapshot", loader)


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================


def validate_transaction_event(data: Dict[str, Any]) -> None:
    """
    Валидация transaction_event данных.

    Raises:
        jsonschema.ValidationError: Если данные не соответствуют схеме
    """
    TransactionEventValidator().validate(data)


def validate_position_snapshot(data: Dict[str, Any]) -> None:
    """
    Валидация position_snapshot данных.

    Raises:
        jsonschema.ValidationError: Если данные не соответствуют схеме
    """
    PositionSnapshotValidator().validate(data)


def parse_transaction_event(data: Dict[str, Any]) -> Transaction:
    """
    Валидация события по контракту и построение Transaction.

    В событии quantity задан числом (или строкой), в модели это Quantity.

    Raises:
        jsonschema.ValidationError: Нарушение контракта
        pydantic.ValidationError: Нарушение правил построения Transaction
    """
    validate_transaction_event(data)

    payload = dict(data)
    if payload.get("quantity") is not None:
        payload["quantity"] = {"value": payload["quantity"]}
    return Transaction.model_validate(payload)
