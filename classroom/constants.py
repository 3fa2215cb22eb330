ADMIN_USERNAME = "admin"

# Outbound event names
LOGIN_RESPONSE = "login_response"
LOGOUT_RESPONSE = "logout_response"
GROUPS_GET_RESPONSE = "groups_get_response"
GROUP_JOIN_RESPONSE = "group_join_response"
GROUP_LEAVE_RESPONSE = "group_leave_response"
GROUP_INFO_RESPONSE = "group_info_response"
GROUP_NUMBERS_RESPONSE = "group_numbers_response"
COORDINATE_CHANGE_RESPONSE = "coordinate_change_response"
XML_CHANGE_RESPONSE = "xml_change_response"
GET_XML_RESPONSE = "get_xml_response"
GET_SETTINGS_RESPONSE = "get-settings-response"
ADD_CLASS_RESPONSE = "add-class-response"
ADD_GROUP_RESPONSE = "add-group-response"
DELETE_GROUP_RESPONSE = "delete-group-response"
LEAVE_CLASS_RESPONSE = "leave-class-response"
DELETE_CLASS_RESPONSE = "delete-class-response"
DELETE_STUDENT_CLASS_RESPONSE = "delete-student-class-response"
GET_CLASSES_RESPONSE = "get-classes-response"
GET_TOOLBAR_RESPONSE = "get-toolbar-response"
DELETE_TOOLBAR_RESPONSE = "delete-toolbar-response"
CREATE_ADMIN_RESPONSE = "create-admin-response"
CHECK_USERNAME_RESPONSE = "check-username-response"
CHECK_SESSION_RESPONSE = "check-session-response"
SERVER_ERROR = "server_error"


def class_room(class_id: str) -> str:
    """Lobby room of every socket that fetched the class's groups."""
    return f"{class_id}x"


def group_room(class_id: str, group_id: int) -> str:
    return f"{class_id}x{group_id}"


def admin_room(class_id: str) -> str:
    return f"admin-{class_id}"


__all__ = [
    "ADMIN_USERNAME",
    "LOGIN_RESPONSE",
    "LOGOUT_RESPONSE",
    "GROUPS_GET_RESPONSE",
    "GROUP_JOIN_RESPONSE",
    "GROUP_LEAVE_RESPONSE",
    "GROUP_INFO_RESPONSE",
    "GROUP_NUMBERS_RESPONSE",
    "COORDINATE_CHANGE_RESPONSE",
    "XML_CHANGE_RESPONSE",
    "GET_XML_RESPONSE",
    "GET_SETTINGS_RESPONSE",
    "ADD_CLASS_RESPONSE",
    "ADD_GROUP_RESPONSE",
    "DELETE_GROUP_RESPONSE",
    "LEAVE_CLASS_RESPONSE",
    "DELETE_CLASS_RESPONSE",
    "DELETE_STUDENT_CLASS_RESPONSE",
    "GET_CLASSES_RESPONSE",
    "GET_TOOLBAR_RESPONSE",
    "DELETE_TOOLBAR_RESPONSE",
    "CREATE_ADMIN_RESPONSE",
    "CHECK_USERNAME_RESPONSE",
    "CHECK_SESSION_RESPONSE",
    "SERVER_ERROR",
    "class_room",
    "group_room",
    "admin_room",
]
