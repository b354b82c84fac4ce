import uuid

from locust import HttpUser, task, between

RESOURCE = "postgres"
CONFIG = {"connectionString": "postgresql://bench@localhost/postgres", "dryRun": True}


class BranchUser(HttpUser):
    wait_time = between(1, 3)

    def on_start(self):
        self.names = []

    @task(3)
    def list_branches(self):
        self.client.get(f"/{RESOURCE}/branches")

    @task(2)
    def create_branch(self):
        name = f"bench_{uuid.uuid4().hex[:12]}"
        data = {"name": name, "parent": "main", "strategy": "dbDumpRestore", "configuration": CONFIG}
        r = self.client.post(f"/{RESOURCE}/branches", json=data)
        if r.status_code == 200:
            self.names.append(name)

    @task(1)
    def delete_branch(self):
        if not self.names:
            return
        name = self.names.pop(0)
        self.client.delete(f"/{RESOURCE}/branches/{name}", name=f"/{RESOURCE}/branches/[name]")
        self.client.get(f"/{RESOURCE}/branches/{name}/events", name=f"/{RESOURCE}/branches/[name]/events")
