"""
Tests for ProjectRoleDirectory (certification_services.role_directory).

Covers:
- Global roles come from the identity provider only
- Client role comes from the project's client_id
- Team roles on a project come from team assignments; without a project
  they come from the identity provider
- projects_for() per role source
"""

from uuid import uuid4

from certification_kernel.domain.roles import Role
from certification_services.role_directory import StaticIdentityProvider


class TestHoldsRole:
    def test_global_role_needs_identity_grant(self, project, role_directory, actors):
        assert role_directory.holds_role(actors.head_consultant, Role.HEAD_CONSULTANT, project.id)
        assert not role_directory.holds_role(actors.project_lead, Role.HEAD_CONSULTANT, project.id)

    def test_client_is_project_client(self, project, role_directory, actors):
        assert role_directory.holds_role(actors.client, Role.CLIENT, project.id)
        assert not role_directory.holds_role(actors.outsider, Role.CLIENT, project.id)
        assert not role_directory.holds_role(actors.client, Role.CLIENT)

    def test_team_role_needs_assignment(self, project, role_directory, actors):
        assert role_directory.holds_role(actors.inspector, Role.INSPECTOR, project.id)
        assert not role_directory.holds_role(actors.drafter, Role.INSPECTOR, project.id)

    def test_team_role_without_project_uses_identity(self, role_directory, identity, actors):
        assert role_directory.holds_role(actors.admin_lead, Role.ADMIN_LEAD)
        assert not role_directory.holds_role(actors.project_lead, Role.ADMIN_LEAD)

    def test_denial_logged(self, project, role_directory, actors, captured_logs):
        role_directory.holds_role(actors.outsider, Role.DRAFTER, project.id)
        denied = [r for r in captured_logs() if r["message"] == "role_check_denied"]
        assert denied[0]["role"] == "drafter"
        assert denied[0]["scope_project_id"] == str(project.id)


class TestProjectsFor:
    def test_team_role(self, project, role_directory, actors):
        assert role_directory.projects_for(actors.drafter, Role.DRAFTER) == {project.id}

    def test_client(self, project, role_directory, actors):
        assert role_directory.projects_for(actors.client, Role.CLIENT) == {project.id}

    def test_global_role_sees_all(self, staffed_project, role_directory, actors):
        ids = {staffed_project(name="A").id, staffed_project(name="B").id}
        assert role_directory.projects_for(actors.head_consultant, Role.HEAD_CONSULTANT) == ids

    def test_ungranted_global_role(self, project, role_directory):
        assert role_directory.projects_for(uuid4(), Role.SUPERADMIN) == frozenset()


class TestStaticIdentityProvider:
    def test_grant_and_revoke(self):
        user = uuid4()
        provider = StaticIdentityProvider()
        provider.grant(user, "head_consultant", Role.SUPERADMIN)
        assert provider.get_actor_roles(user) == {Role.HEAD_CONSULTANT, Role.SUPERADMIN}
        provider.revoke(user, Role.SUPERADMIN)
        assert provider.get_actor_roles(user) == {Role.HEAD_CONSULTANT}
