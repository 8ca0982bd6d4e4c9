"""Unit tests for the HubSpot command schema."""

import pytest

from hubspot_assistant.errors import CommandValidationFailed
from hubspot_assistant.schemas.chat import CommandAction, CommandTarget
from hubspot_assistant.services.commands import (
    COMMAND_NAMES,
    DEAL_STAGES,
    invalid_deal_stage,
    is_idempotent,
    validate_command,
)


def wrap(action, **args):
    """Build a command in the nested shape the prompt asks for."""
    return {
        "action": action,
        "data": {"command": {"name": COMMAND_NAMES[CommandAction(action)], "args": args}},
    }


class TestContacts:

    def test_create_contact_minimal(self):
        """Test first and last name are enough for a contact."""
        command = validate_command(wrap("create_contact", properties={"firstName": "Jean", "lastName": "Dupont"}))
        assert command.action == CommandAction.CREATE_CONTACT
        assert command.filters is None

    def test_create_contact_missing_last_name(self):
        """Test a missing lastName is named in the error."""
        with pytest.raises(CommandValidationFailed) as exc:
            validate_command(wrap("create_contact", properties={"firstName": "Jean"}))
        assert "lastName" in exc.value.message

    def test_create_contact_blank_name(self):
        """Test a blank name counts as missing."""
        with pytest.raises(CommandValidationFailed):
            validate_command(wrap("create_contact", properties={"firstName": " ", "lastName": "Dupont"}))

    def test_property_values_must_be_scalars(self):
        """Test list property values are rejected."""
        with pytest.raises(CommandValidationFailed):
            validate_command(wrap(
                "create_contact",
                properties={"firstName": "Jean", "lastName": "Dupont", "phone": ["06"]},
            ))

    def test_update_contact_requires_identifier(self):
        """Test a contact update without identifier is rejected."""
        with pytest.raises(CommandValidationFailed):
            validate_command(wrap("update_contact", properties={"firstName": "Jean", "lastName": "Dupont"}))

    def test_update_contact_with_email(self):
        """Test email identifies the contact to update."""
        command = validate_command(wrap(
            "update_contact",
            properties={"firstName": "Jean", "lastName": "Dupont", "email": "jean@example.com"},
        ))
        assert command.action == CommandAction.UPDATE_CONTACT

    def test_update_contact_with_contact_id_in_args(self):
        """Test contactId beside properties identifies the contact."""
        command = validate_command(wrap(
            "update_contact",
            contactId="42",
            properties={"firstName": "Jean", "lastName": "Dupont"},
        ))
        assert command.args["contactId"] == "42"


class TestCompanies:

    def test_create_company_requires_name(self):
        """Test a company without name is rejected."""
        with pytest.raises(CommandValidationFailed):
            validate_command(wrap("create_company", properties={"domain": "acme.fr"}))

    def test_create_company_with_employees(self):
        """Test numeric properties are kept."""
        command = validate_command(wrap(
            "create_company", properties={"name": "Acme", "numberOfEmployees": 12}
        ))
        assert command.target == CommandTarget.COMPANY
        assert command.properties["numberOfEmployees"] == 12

    def test_update_company_requires_id(self):
        """Test a company update needs companyId."""
        with pytest.raises(CommandValidationFailed):
            validate_command(wrap("update_company", properties={"name": "Acme"}))
        command = validate_command(wrap("update_company", properties={"name": "Acme", "companyId": "7"}))
        assert command.command_name == "hubspot.updateCompany"


class TestDeals:

    def test_create_deal_requires_name(self):
        """Test a deal without dealName is rejected."""
        with pytest.raises(CommandValidationFailed):
            validate_command(wrap("create_deal", properties={"amount": 1000}))

    def test_invalid_stage_detected(self):
        """Test an unknown dealstage is reported."""
        command = validate_command(wrap(
            "create_deal", properties={"dealName": "Contrat", "dealstage": "negotiation"}
        ))
        assert invalid_deal_stage(command) == "negotiation"

    def test_valid_stages_accepted(self):
        """Test every allowed dealstage passes."""
        for stage in DEAL_STAGES:
            command = validate_command(wrap(
                "create_deal", properties={"dealName": "Contrat", "dealstage": stage}
            ))
            assert invalid_deal_stage(command) is None

    def test_search_deals_without_filters(self):
        """Test a deal search without filters is allowed."""
        command = validate_command(wrap("search_deals"))
        assert command.filters == {}

    def test_search_deals_sort_order(self):
        """Test an unknown sort order is rejected."""
        with pytest.raises(CommandValidationFailed):
            validate_command(wrap("search_deals", dealFilters={"sort": {"field": "amount", "order": "up"}}))

    def test_six_stages(self):
        """Test exactly six deal stages are allowed."""
        assert len(DEAL_STAGES) == 6


class TestSearches:

    def test_search_requires_term(self):
        """Test a search without term is rejected."""
        with pytest.raises(CommandValidationFailed):
            validate_command(wrap("search_contacts", filters={"properties": ["email"]}))

    def test_search_properties_must_be_strings(self):
        """Test non-string search fields are rejected."""
        with pytest.raises(CommandValidationFailed):
            validate_command(wrap("search_contacts", filters={"term": "Dupont", "properties": [1]}))

    def test_searches_are_idempotent(self):
        """Test only searches are marked idempotent."""
        search = validate_command(wrap("search_contacts", filters={"term": "Dupont"}))
        create = validate_command(wrap("create_company", properties={"name": "Acme"}))
        assert is_idempotent(search)
        assert not is_idempotent(create)


class TestMalformed:

    def test_not_a_dict(self):
        """Test a non-object command is rejected."""
        with pytest.raises(CommandValidationFailed):
            validate_command(["create_contact"])

    def test_missing_args(self):
        """Test a nested command without args is rejected."""
        with pytest.raises(CommandValidationFailed):
            validate_command({"action": "create_contact", "data": {"command": {"name": "x"}}})

    def test_null_action(self):
        """Test a null action is rejected."""
        with pytest.raises(CommandValidationFailed):
            validate_command({"action": None, "properties": {"name": "Acme"}})
