# ==============================================================================
# WSGI Entry Point - Para Gunicorn em produção
# ==============================================================================
# USO:
#   gunicorn wsgi:app --bind 0.0.0.0:$PORT
#
# ESTRUTURA DO PROJETO:
#   repo_root/            <- Diretório de trabalho (já está no sys.path)
#   ├── wsgi.py           <- Este arquivo
#   ├── pyproject.toml
#   └── agencia_milhas/   <- Pacote Python
#       ├── main.py
#       ├── services/
#       └── repositories/
# ==============================================================================

from agencia_milhas.main import create_app

app = create_app()

if __name__ == '__main__':
    app.run(debug=not app.config['PRODUCTION_MODE'], host='0.0.0.0', port=5000)
