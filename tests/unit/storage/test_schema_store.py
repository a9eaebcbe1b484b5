"""
Unit tests for the trigger schema repository and the destination directory.
"""

import pytest

from hookrelay.models.schema import FieldMapping, FieldMappingRule, TriggerSchema
from hookrelay.storage.destinations import DynamoDBDestinationDirectory


class TestDynamoDBSchemaStore:
    """Test cases for DynamoDBSchemaStore."""

    @pytest.mark.asyncio
    async def test_capture_example_is_write_once(self, schema_store, clock):
        captured_at = clock.now
        first = await schema_store.capture_example("dest_1", "T", {'n': 1}, captured_at)
        second = await schema_store.capture_example("dest_1", "T", {'n': 2}, clock.advance(minutes=1))

        assert first is True
        assert second is False
        schema = await schema_store.get_schema("dest_1", "T")
        assert schema.example_payload == {'n': 1}
        assert schema.captured_at == captured_at

    @pytest.mark.asyncio
    async def test_upsert_round_trips_mapping(self, schema_store):
        await schema_store.upsert_schema(TriggerSchema(
            destination_id="dest_1",
            trigger_name="T",
            field_mapping=FieldMapping(
                mappings=[FieldMappingRule(source='a.b', target='c')],
                excluded=['secret'],
                include_unmapped=False
            ),
            include_user_data=True
        ))

        schema = await schema_store.get_schema("dest_1", "T")

        assert schema.include_user_data is True
        assert schema.example_payload is None
        assert schema.field_mapping.include_unmapped is False
        assert schema.field_mapping.mappings[0].source == 'a.b'
        assert schema.field_mapping.excluded == ['secret']

    @pytest.mark.asyncio
    async def test_capture_after_upsert_keeps_mapping(self, schema_store, clock):
        await schema_store.upsert_schema(TriggerSchema(
            destination_id="dest_1",
            trigger_name="T",
            field_mapping=FieldMapping(excluded=['x'])
        ))

        assert await schema_store.capture_example("dest_1", "T", {'x': 1}, clock.now) is True

        schema = await schema_store.get_schema("dest_1", "T")
        assert schema.field_mapping.excluded == ['x']
        assert schema.example_payload == {'x': 1}

    @pytest.mark.asyncio
    async def test_missing_schema(self, schema_store):
        assert await schema_store.get_schema("dest_1", "nothing") is None

    @pytest.mark.asyncio
    async def test_list_by_destination(self, schema_store, clock):
        await schema_store.capture_example("dest_1", "b_trigger", {}, clock.now)
        await schema_store.capture_example("dest_1", "a_trigger", {}, clock.now)
        await schema_store.capture_example("dest_2", "c_trigger", {}, clock.now)

        schemas = await schema_store.list_by_destination("dest_1")

        assert [schema.trigger_name for schema in schemas] == ["a_trigger", "b_trigger"]

    def test_empty_mapping_string_means_no_mapping(self):
        schema = TriggerSchema(destination_id="d", trigger_name="t", field_mapping="  ")

        assert schema.field_mapping is None


class TestDynamoDBDestinationDirectory:
    """Test cases for DynamoDBDestinationDirectory."""

    @pytest.fixture
    def destinations(self, dynamodb, test_settings):
        table = dynamodb.Table(test_settings.destinations_table_name)
        table.put_item(Item={
            'destination_id': "dest_1",
            'endpoint_url': "https://one.example.com",
            'enabled': True,
            'triggers': ["T", "U"],
        })
        table.put_item(Item={
            'destination_id': "dest_2",
            'endpoint_url': "https://two.example.com",
            'enabled': False,
            'triggers': ["T"],
        })
        table.put_item(Item={
            'destination_id': "dest_3",
            'endpoint_url': "https://three.example.com",
            'enabled': True,
            'triggers': ["U"],
        })
        return DynamoDBDestinationDirectory(test_settings.destinations_table_name, dynamodb=dynamodb)

    @pytest.mark.asyncio
    async def test_find_by_trigger_returns_enabled_subscribers(self, destinations):
        found = await destinations.find_by_trigger("T")

        assert [d.destination_id for d in found] == ["dest_1"]
        assert found[0].triggers == ["T", "U"]

    @pytest.mark.asyncio
    async def test_get(self, destinations):
        destination = await destinations.get("dest_3")

        assert destination.endpoint_url == "https://three.example.com"
        assert await destinations.get("missing") is None
