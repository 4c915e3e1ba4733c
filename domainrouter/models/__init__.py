from domainrouter.db.base_class import Base
from domainrouter.models.tenant import Tenant
from domainrouter.models.domain_verification import DomainVerification
