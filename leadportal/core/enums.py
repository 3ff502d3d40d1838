from enum import Enum


class UserRole(str, Enum):
    COMPANY_ADMIN = "company_admin"
    AFFILIATE_ADMIN = "affiliate_admin"
    AFFILIATE_USER = "affiliate_user"

    def __str__(self):
        return self.value


AFFILIATE_ROLES = {UserRole.AFFILIATE_ADMIN, UserRole.AFFILIATE_USER}


class LeadStatus(str, Enum):
    NEW = "new"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    REJECTED = "rejected"

    def __str__(self):
        return self.value


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"

    def __str__(self):
        return self.value


class AuditAction(str, Enum):
    LOGIN = "login"
    CREATE_LEAD = "create_lead"
    UPDATE_LEAD_STATUS = "update_lead_status"
    ADD_COMMENT = "add_comment"
    UPLOAD_DOCUMENT = "upload_document"
    BULK_IMPORT = "bulk_import"
    EXPORT_LEADS = "export_leads"

    def __str__(self):
        return self.value
