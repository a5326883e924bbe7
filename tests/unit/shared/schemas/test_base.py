"""
Tests for base schemas.
"""

import pytest
from pydantic import ValidationError

from shared.schemas.base import BaseSchema, FrozenSchema


class TestBaseSchema:
    """Tests for BaseSchema."""

    def test_from_attributes(self):
        """Test that from_attributes is enabled."""

        class TestModel(BaseSchema):
            name: str
            value: int

        # Create object with attributes
        class DummyObj:
            name = "test"
            value = 123

        model = TestModel.model_validate(DummyObj())
        assert model.name == "test"
        assert model.value == 123

    def test_populate_by_name(self):
        """Test that populate_by_name is enabled."""

        class TestModel(BaseSchema):
            test_field: str

        # Can use field name
        model = TestModel(test_field="value")
        assert model.test_field == "value"

    def test_populate_by_alias(self):
        """Test that camelCase aliases are accepted."""

        class TestModel(BaseSchema):
            test_field: str

        model = TestModel.model_validate({"testField": "value"})
        assert model.test_field == "value"

    def test_to_dict_uses_camel_case(self):
        """Test that to_dict serializes with camelCase keys."""

        class TestModel(BaseSchema):
            record_count: int
            start_time: str | None = None

        assert TestModel(record_count=2).to_dict() == {"recordCount": 2, "startTime": None}


class TestFrozenSchema:
    """Tests for FrozenSchema."""

    def test_is_immutable(self):
        """Test that assignment is rejected."""

        class TestModel(FrozenSchema):
            name: str

        model = TestModel(name="test")
        with pytest.raises(ValidationError):
            model.name = "changed"
