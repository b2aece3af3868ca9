"""Tests for the campaign form workflow: save, invite, import."""

import pytest

from campaign_keeper.client.campaign_setup import CampaignSetup
from campaign_keeper.client.errors import FormError, NotOwnerError


@pytest.fixture
def setup(workspace):
    return workspace.setup


async def test_create_requires_title_and_description(setup, workspace):
    with pytest.raises(FormError, match="Please fill in all required fields"):
        await setup.save("Lost Mines", "  ")
    assert workspace.campaigns.items == []


async def test_create_rejects_bad_roster(setup, workspace):
    with pytest.raises(FormError, match="already added"):
        await setup.save(
            "Lost Mines", "intro adventure",
            members=[{"email": "a@b.com"}, {"email": "A@b.com"}],
        )
    assert workspace.campaigns.items == []


async def test_create_invites_members_and_imports(setup, workspace, outbox):
    library = await workspace.campaigns.create({"title": "Library", "description": "x"})
    source = await workspace.scenarios.create(
        {"title": "Goblin Arrows", "description": "ch. 1", "campaign_id": library.id}
    )

    result = await setup.save(
        "Lost Mines", "intro adventure",
        members=[{"email": "a@b.com", "role": "game_master"}, {"email": "c@d.com"}],
        imported_scenarios=[source.id],
    )

    assert result.ok
    campaign = result.campaign
    assert workspace.campaigns.items[0].id == campaign.id
    assert [(m.email, m.role, m.status) for m in campaign.roster] == [
        ("a@b.com", "game_master", "invited"),
        ("c@d.com", "player", "invited"),
    ]
    assert campaign.imported_scenarios == [source.id]
    assert [s.name for s in result.invitations.steps] == ["invite a@b.com", "invite c@d.com"]
    assert len(outbox.messages) == 2
    assert len(result.imports.imported) == 1
    assert [s.campaign_id for s in workspace.scenarios.items] == [campaign.id]


async def test_invitation_failure_does_not_undo_save(setup, workspace, outbox):
    outbox.rejected.add("c@d.com")

    result = await setup.save(
        "Lost Mines", "intro adventure", members=[{"email": "a@b.com"}, {"email": "c@d.com"}]
    )

    assert not result.ok
    assert result.save.ok
    assert [f.name for f in result.invitations.failures] == ["invite c@d.com"]
    assert len(result.campaign.roster) == 2


async def test_edit_only_clones_new_imports(setup, workspace):
    library = await workspace.campaigns.create({"title": "Library", "description": "x"})
    first = await workspace.scenarios.create({"title": "One", "description": "x", "campaign_id": library.id})
    second = await workspace.scenarios.create({"title": "Two", "description": "x", "campaign_id": library.id})

    created = await setup.save("Lost Mines", "intro adventure", imported_scenarios=[first.id])
    edited = await setup.save(
        "Lost Mines", "revised intro",
        campaign=created.campaign,
        imported_scenarios=[first.id, second.id],
    )

    assert edited.ok
    assert edited.campaign.description == "revised intro"
    assert edited.campaign.imported_scenarios == [first.id, second.id]
    assert len(edited.imports.outcomes) == 1

    copies = await workspace.remote.select("scenarios", eq={"campaign_id": created.campaign.id})
    assert sorted(s["title"] for s in copies) == ["One", "Two"]


async def test_edit_with_stale_copy_reports_save_failure(setup, workspace, campaign):
    await workspace.campaigns.update(campaign.id, {"title": "Renamed elsewhere"})

    result = await setup.save("Lost Mines", "intro adventure", campaign=campaign)

    assert result.campaign is None
    assert not result.save.ok
    assert result.save.error == workspace.campaigns.error("update")


async def test_only_owner_edits(workspace, campaign, other_workspace):
    with pytest.raises(NotOwnerError):
        await CampaignSetup(other_workspace).save("Mine", "now", campaign=campaign)


async def test_edit_without_image_keeps_stored_image(setup, workspace):
    created = await setup.save("Lost Mines", "intro adventure", image_url="http://img/cover.png")
    assert created.campaign.image_url == "http://img/cover.png"

    edited = await setup.save("Lost Mines", "revised intro", campaign=created.campaign)
    assert edited.campaign.image_url == "http://img/cover.png"

    cleared = await setup.save("Lost Mines", "revised intro", campaign=edited.campaign, image_url="")
    assert cleared.campaign.image_url is None
