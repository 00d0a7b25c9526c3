
import os
import json

from app.backend_client import BackendAPIClient


def main() -> None:

    api_url = os.getenv("BACKEND_API_URL")
    print(f"Using backend: {api_url!r}")

    client = BackendAPIClient(api_url=api_url)
    try:
        models = client.list_models()
        materials = client.list_materials()
    finally:
        client.close()

    print(f"\nTotal models in backend DB: {len(models)}")
    print(f"Total materials in backend DB: {len(materials)}\n")

    by_model = {}
    for material in materials:
        by_model.setdefault(material["modelId"], []).append(material)

    for i, m in enumerate(models, start=1):
        print(f"--- Model #{i} ---")
        print(json.dumps(m, ensure_ascii=False, indent=2))
        for material in by_model.pop(m["id"], []):
            print(f"  material: {material['name']} ({material['id']})")
        print()

    # Materials whose model has been deleted
    orphaned = [mat for mats in by_model.values() for mat in mats]
    if orphaned:
        print(f"--- Materials without a model: {len(orphaned)} ---")
        for material in orphaned:
            print(f"  material: {material['name']} (modelId={material['modelId']})")

if __name__ == "__main__":
    main()
