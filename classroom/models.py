from tortoise import fields
from tortoise.models import Model


class Admin(Model):
    """Instructor account allowed to run admin operations."""

    id = fields.IntField(pk=True)
    username = fields.CharField(max_length=40, unique=True, index=True)
    password_hash = fields.CharField(max_length=1000)
    date_created = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "admins"


class ClassRecord(Model):
    id = fields.IntField(pk=True)
    admin = fields.ForeignKeyField("models.Admin", related_name="classes", null=True, on_delete=fields.CASCADE)
    # External handle, filled in once the class is registered in memory
    hashed_id = fields.CharField(max_length=16, null=True)
    class_name = fields.CharField(max_length=40, unique=True)
    date_created = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "classes"


class GroupRecord(Model):
    id = fields.IntField(pk=True)
    klass = fields.ForeignKeyField("models.ClassRecord", related_name="groups", on_delete=fields.CASCADE)
    # Group number inside its class (1-based)
    group_id = fields.IntField()
    date_created = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "groups"
        unique_together = (("klass", "group_id"),)


class Toolbar(Model):
    id = fields.IntField(pk=True)
    klass = fields.ForeignKeyField("models.ClassRecord", related_name="toolbars", on_delete=fields.CASCADE)
    toolbar_name = fields.CharField(max_length=40)
    tools = fields.CharField(max_length=100)
    date_created = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "toolbars"


class AdminSession(Model):
    id = fields.IntField(pk=True)
    admin = fields.ForeignKeyField("models.Admin", related_name="sessions", on_delete=fields.CASCADE)
    password_hash = fields.CharField(max_length=1000)
    date_created = fields.DatetimeField(auto_now_add=True)
    last_updated = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "sessions"
