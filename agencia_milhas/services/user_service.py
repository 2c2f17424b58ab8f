# ==============================================================================
# SERVIÇO DE USUÁRIOS
# ==============================================================================
# Cadastro da agência, login, convites e troca de senha.
#
# PAPÉIS:
#   admin           -> tudo, inclusive convidar usuários
#   supplier_owner  -> dono da agência, também convida
#   seller          -> vendedor (vendas, bilhetes, orçamentos)
#
# Cada usuário pertence a uma única agência (supplier_id). Usuários criados
# pelo webhook de pagamentos nascem sem agência até concluir o cadastro.
# ==============================================================================

import logging
from typing import Any, Dict, List, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from agencia_milhas.models import AuditType, UserRole
from agencia_milhas.repositories import SupplierRepository, UserRepository
from agencia_milhas.services.audit_service import AuditService

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
VALID_ROLES = frozenset(r.value for r in UserRole)
INVITER_ROLES = frozenset([UserRole.ADMIN.value, UserRole.SUPPLIER_OWNER.value])


class UserService:
    """
    Responsabilidades:
    - Autenticação (senhas com hash do Werkzeug)
    - Cadastro de agência + dono
    - Convite de usuários para a mesma agência
    - Troca de senha
    """

    def __init__(
        self,
        user_repo: UserRepository,
        supplier_repo: SupplierRepository,
        audit_service: AuditService = None
    ):
        self.user_repo = user_repo
        self.supplier_repo = supplier_repo
        self.audit_service = audit_service

    @staticmethod
    def _public(user: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'email': user.get('email'),
            'role': user.get('role', UserRole.SELLER.value),
            'supplier_id': user.get('supplier_id'),
            'full_name': user.get('full_name', ''),
        }

    @staticmethod
    def _check_credentials(email: str, password: str) -> Optional[str]:
        if not email or '@' not in email:
            return 'E-mail inválido'
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            return f'A senha deve ter pelo menos {MIN_PASSWORD_LENGTH} caracteres'
        return None

    # =========================================================================
    # AUTENTICAÇÃO
    # =========================================================================

    def authenticate(self, email: str, password: str) -> Optional[Dict[str, Any]]:
        """
        Confere e-mail e senha.

        Returns:
            Dados públicos do usuário, ou None se as credenciais não conferem
        """
        user = self.user_repo.get_user(email)
        if not user or not password:
            return None
        if not check_password_hash(user.get('password', ''), password):
            logger.info("[LOGIN] Senha incorreta para %s", email)
            return None

        if self.audit_service:
            self.audit_service.log(AuditType.USUARIO.value, user['email'], 'Login realizado',
                                   supplier_id=user.get('supplier_id'))
        return self._public(user)

    def get_user(self, email: str) -> Optional[Dict[str, Any]]:
        user = self.user_repo.get_user(email)
        return self._public(user) if user else None

    def get_supplier_id(self, email: str) -> Optional[str]:
        user = self.user_repo.get_user(email)
        return user.get('supplier_id') if user else None

    def list_users(self, supplier_id: str) -> List[Dict[str, Any]]:
        return self.user_repo.list_by_supplier(supplier_id)

    # =========================================================================
    # CADASTRO
    # =========================================================================

    def register(self, email: str, password: str, agency_name: str, full_name: str = '') -> Dict[str, Any]:
        """
        Cria a agência e o usuário dono.

        Se o e-mail já existe sem agência (criado pelo checkout), o cadastro
        completa esse usuário em vez de recusar.
        """
        email = (email or '').strip().lower()
        error = self._check_credentials(email, password)
        if error:
            return {'ok': False, 'error': error}
        agency_name = (agency_name or '').strip()
        if not agency_name:
            return {'ok': False, 'error': 'Nome da agência é obrigatório'}

        existing = self.user_repo.get_user(email)
        if existing and existing.get('supplier_id'):
            return {'ok': False, 'error': 'E-mail já cadastrado'}

        supplier = self.supplier_repo.insert({'name': agency_name, 'owner_email': email})
        password_hash = generate_password_hash(password)
        if existing:
            self.user_repo.update_user(email, {
                'password': password_hash,
                'supplier_id': supplier['id'],
                'role': UserRole.SUPPLIER_OWNER.value,
                'full_name': full_name or existing.get('full_name', ''),
            })
        else:
            self.user_repo.create_user(email, password_hash, UserRole.SUPPLIER_OWNER.value,
                                       supplier['id'], full_name)

        logger.info("[CADASTRO] Agência %s criada por %s", agency_name, email)
        if self.audit_service:
            self.audit_service.log(AuditType.USUARIO.value, email, f"Agência {agency_name} cadastrada",
                                   supplier['id'], {}, supplier['id'])
        return {'ok': True, 'user': self.get_user(email), 'supplier': supplier}

    def invite_user(
        self,
        inviter_email: str,
        email: str,
        password: str,
        role: str = UserRole.SELLER.value,
        full_name: str = ''
    ) -> Dict[str, Any]:
        """Cria um usuário na agência de quem convida (apenas admin/dono)."""
        inviter = self.user_repo.get_user(inviter_email)
        if not inviter or inviter.get('role') not in INVITER_ROLES:
            return {'ok': False, 'error': 'Sem permissão para convidar usuários'}
        if not inviter.get('supplier_id'):
            return {'ok': False, 'error': 'Usuário sem agência vinculada'}

        email = (email or '').strip().lower()
        error = self._check_credentials(email, password)
        if error:
            return {'ok': False, 'error': error}
        if role not in VALID_ROLES:
            return {'ok': False, 'error': 'Papel inválido'}
        if self.user_repo.user_exists(email):
            return {'ok': False, 'error': 'E-mail já cadastrado'}

        self.user_repo.create_user(email, generate_password_hash(password), role,
                                   inviter['supplier_id'], full_name)
        if self.audit_service:
            self.audit_service.log(AuditType.USUARIO.value, inviter['email'],
                                   f"Usuário {email} convidado como {role}",
                                   email, {'role': role}, inviter['supplier_id'])
        return {'ok': True, 'user': self.get_user(email)}

    def change_password(self, email: str, current_password: str, new_password: str) -> Dict[str, Any]:
        user = self.user_repo.get_user(email)
        if not user or not check_password_hash(user.get('password', ''), current_password or ''):
            return {'ok': False, 'error': 'Senha atual incorreta'}
        if not new_password or len(new_password) < MIN_PASSWORD_LENGTH:
            return {'ok': False, 'error': f'A senha deve ter pelo menos {MIN_PASSWORD_LENGTH} caracteres'}

        self.user_repo.update_password(email, generate_password_hash(new_password))
        if self.audit_service:
            self.audit_service.log(AuditType.USUARIO.value, user['email'], 'Senha alterada',
                                   supplier_id=user.get('supplier_id'))
        return {'ok': True}
